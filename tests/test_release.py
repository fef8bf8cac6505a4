import json
import subprocess

import pytest

from stepline.config import CONFIG_FILE, ProjectConfig
from stepline.errors import AlreadyReleased, ReleaseError
from stepline.git_facts import git
from stepline.release import (
    MultiBranchWorkflow,
    SingleBranchWorkflow,
    init_project,
    next_release,
    release,
)
from stepline.version import Version, get_version, strategies_from_config


def _strategies(root):
    return strategies_from_config(ProjectConfig.load(root / CONFIG_FILE), root)


def _show(root, rev, path):
    return subprocess.run(
        ["git", "show", f"{rev}:{path}"], cwd=root, text=True, capture_output=True, check=True
    ).stdout


def test_init_project(project):
    assert git.branches(project) == ["release/0.1"]
    assert git.current_branch(project) == "release/0.1"
    assert not git.is_dirty(project)

    config = json.loads((project / CONFIG_FILE).read_text())
    assert config == {
        "version": {"current": "0.1.0-DEV"},
        "release": {"workflow": {"type": "multi_branch"}},
    }


def test_init_project_refuses_non_empty_directory(tmp_path, git_env):
    (tmp_path / "busy").mkdir()
    (tmp_path / "busy" / "file.txt").write_text("x")

    with pytest.raises(ReleaseError):
        init_project(tmp_path / "busy")


def test_init_project_only_multi_branch(tmp_path, git_env):
    with pytest.raises(ReleaseError):
        init_project(tmp_path / "single", "single_branch")
    assert not (tmp_path / "single").exists()


def test_release_tags_and_bumps(project):
    tag = release(project, Version.parse("0.1.0"), MultiBranchWorkflow(), _strategies(project))

    assert tag == "v0.1.0"
    assert git.has_tag("v0.1.0", project)
    assert json.loads(_show(project, "v0.1.0", CONFIG_FILE))["version"]["current"] == "0.1.0"

    assert get_version(_strategies(project)) == Version.parse("0.1.1-DEV")
    assert not git.is_dirty(project)


def test_release_twice_is_refused(project):
    workflow = MultiBranchWorkflow()
    release(project, Version.parse("0.1.0"), workflow, _strategies(project))

    with pytest.raises(AlreadyReleased) as exc:
        release(project, Version.parse("0.1.0"), workflow, _strategies(project))
    assert exc.value.tag == "v0.1.0"


def test_release_needs_its_branch(project):
    with pytest.raises(ReleaseError):
        release(project, Version.parse("0.3.0"), MultiBranchWorkflow(), _strategies(project))


def test_next_release_creates_branch(project):
    workflow = MultiBranchWorkflow()
    nv = next_release(project, Version.parse("0.1.0-DEV"), "minor", workflow, _strategies(project))

    assert nv == Version.parse("0.2.0-DEV")
    assert git.current_branch(project) == "release/0.2"
    assert sorted(git.branches(project)) == ["release/0.1", "release/0.2"]
    assert get_version(_strategies(project)) == nv
    assert not git.is_dirty(project)

    # release/0.1 keeps its own version
    assert json.loads(_show(project, "release/0.1", CONFIG_FILE))["version"]["current"] == "0.1.0-DEV"


def test_next_major_release(project):
    nv = next_release(project, Version.parse("0.1.0-DEV"), "major", MultiBranchWorkflow(), _strategies(project))
    assert str(nv) == "1.0.0-DEV"
    assert git.has_branch("release/1.0", project)


def test_next_release_refuses_existing_branch(project):
    workflow = MultiBranchWorkflow()
    next_release(project, Version.parse("0.1.0-DEV"), "minor", workflow, _strategies(project))

    with pytest.raises(ReleaseError):
        next_release(project, Version.parse("0.1.0-DEV"), "minor", workflow, _strategies(project))


def test_next_release_refuses_dirty_tree(project):
    (project / "scratch.txt").write_text("wip")

    with pytest.raises(ReleaseError) as exc:
        next_release(project, Version.parse("0.1.0-DEV"), "minor", MultiBranchWorkflow(), _strategies(project))
    assert "uncommitted" in str(exc.value)


def test_next_release_needs_base_branch(project):
    with pytest.raises(ReleaseError):
        next_release(project, Version.parse("0.5.0"), "minor", MultiBranchWorkflow(), _strategies(project))


def test_next_release_needs_multi_branch(project):
    with pytest.raises(ReleaseError):
        next_release(project, Version.parse("0.1.0"), "minor", SingleBranchWorkflow(), _strategies(project))


@pytest.fixture
def trunk_repo(tmp_path, git_env):
    root = tmp_path / "trunk"
    root.mkdir()
    git.init(root)
    config = ProjectConfig(root / CONFIG_FILE, {"version": {"current": "1.0.0-DEV"}})
    config.save()
    git.commit("initial", root)
    git.create_branch("trunk", None, root)
    return root


def test_single_branch_release(trunk_repo):
    git.create_tag("nightly", "HEAD", trunk_repo)
    workflow = SingleBranchWorkflow(branch_name="trunk")

    assert release(trunk_repo, Version(1, 0, 0), workflow, _strategies(trunk_repo)) == "v1.0.0"
    assert get_version(_strategies(trunk_repo)) == Version.parse("1.0.1-DEV")


def test_single_branch_refuses_lower_version(trunk_repo):
    git.create_tag("v2.0.0", "HEAD", trunk_repo)
    workflow = SingleBranchWorkflow(branch_name="trunk")

    with pytest.raises(ReleaseError):
        release(trunk_repo, Version(1, 5, 0), workflow, _strategies(trunk_repo))
