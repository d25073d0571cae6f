import os

from membridge.project_name import current_project, extract_project_name


def test_extract_project_name_from_simple_path() -> None:
    assert extract_project_name("/home/user/my-project") == "my-project"


def test_extract_project_name_from_nested_path() -> None:
    assert extract_project_name("/home/user/projects/my-project/src") == "src"


def test_extract_project_name_with_special_characters() -> None:
    assert extract_project_name("/home/user/my-project-v2.0") == "my-project-v2.0"


def test_extract_project_name_root_and_trailing_slash() -> None:
    assert extract_project_name("/") == ""
    assert extract_project_name("/home/user/app/") == "app"


def test_extract_project_name_hidden_directory_uses_parent() -> None:
    assert extract_project_name("/home/user/.git") == "user"


def test_extract_project_name_override_wins() -> None:
    assert extract_project_name("/home/user/app", override=" pinned ") == "pinned"
    assert extract_project_name("/home/user/app", override="  ") == "app"


def test_current_project_uses_cwd(tmp_path, monkeypatch) -> None:
    project_dir = tmp_path / "some-repo"
    project_dir.mkdir()
    monkeypatch.chdir(project_dir)

    assert current_project() == "some-repo"
    assert os.getcwd().endswith("some-repo")
