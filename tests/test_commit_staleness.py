from __future__ import annotations

from fakes import owl_yaml

from codegen_sync.configs.owlbot_yaml import OwlBotYaml
from codegen_sync.domain.entities import OwlBotYamlAndPath
from codegen_sync.scan.scheduler import is_commit_hash_too_old

HASHES = ["h0", "h1", "h2", "h3", "h4"]


def _yamls(*begin_after: str | None) -> list[OwlBotYamlAndPath]:
    return [
        OwlBotYamlAndPath(path=f"/{i}/.OwlBot.yaml", yaml=owl_yaml(begin_after=b))
        for i, b in enumerate(begin_after)
    ]


def test_never_too_old_without_boundary() -> None:
    for yamls in (None, [], _yamls(None, "", "   ")):
        assert not any(is_commit_hash_too_old(yamls, i, HASHES) for i in range(len(HASHES)))


def test_boundary_marks_it_and_everything_older_as_too_old() -> None:
    yamls = _yamls("h2")
    assert [is_commit_hash_too_old(yamls, i, HASHES) for i in range(len(HASHES))] == [
        False,
        False,
        True,
        True,
        True,
    ]


def test_boundary_outside_window_is_never_too_old() -> None:
    yamls = _yamls("not-in-history")
    assert not any(is_commit_hash_too_old(yamls, i, HASHES) for i in range(len(HASHES)))


def test_first_declared_boundary_wins() -> None:
    yamls = _yamls(None, " h3 ", "h0")
    assert not is_commit_hash_too_old(yamls, 2, HASHES)
    assert is_commit_hash_too_old(yamls, 3, HASHES)


def test_boundary_parsed_from_yaml_keys() -> None:
    parsed = OwlBotYaml.model_validate({"begin-after-commit-hash": "h1"})
    yamls = [OwlBotYamlAndPath(path="/.OwlBot.yaml", yaml=parsed)]
    assert not is_commit_hash_too_old(yamls, 0, HASHES)
    assert is_commit_hash_too_old(yamls, 1, HASHES)


def test_numeric_boundary_is_matched_as_a_hash() -> None:
    hashes = ["aaa", "1234567", "bbb"]
    parsed = OwlBotYaml.model_validate({"begin-after-commit-hash": 1234567})
    yamls = [OwlBotYamlAndPath(path="/.OwlBot.yaml", yaml=parsed)]
    assert not is_commit_hash_too_old(yamls, 0, hashes)
    assert is_commit_hash_too_old(yamls, 1, hashes)


def test_list_boundary_never_marks_commits_too_old() -> None:
    parsed = OwlBotYaml.model_validate({"begin-after-commit-hash": ["h1"]})
    yamls = [OwlBotYamlAndPath(path="/.OwlBot.yaml", yaml=parsed)]
    assert not any(is_commit_hash_too_old(yamls, i, HASHES) for i in range(len(HASHES)))
