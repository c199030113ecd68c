from nextroute.annotations.merge import resolve_include_exclude


def test_removal_cancels_earlier_token_regardless_of_intervening():
    assert resolve_include_exclude(["x", "y", "x-"]) == ["y"]
    assert resolve_include_exclude(["a", "x", "y", "x-"]) == resolve_include_exclude(["a", "y"])


def test_duplicates_keep_first_position():
    assert resolve_include_exclude(["a", "b", "a"]) == ["a", "b"]


def test_removal_only_affects_matching_token():
    assert resolve_include_exclude(["auth", "log", "log-"]) == ["auth"]
    assert resolve_include_exclude(["auth", "log", "logger-"]) == ["auth", "log"]


def test_token_readded_after_removal_survives():
    assert resolve_include_exclude(["a", "a-", "a"]) == ["a"]


def test_removal_without_prior_token_is_ignored():
    assert resolve_include_exclude(["a-", "b"]) == ["b"]


def test_custom_suffix():
    assert resolve_include_exclude(["a", "b", "a!"], suffix="!") == ["b"]


def test_empty():
    assert resolve_include_exclude([]) == []
