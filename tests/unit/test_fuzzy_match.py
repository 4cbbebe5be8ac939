from ensemble.services.routing.fuzzy import match_profile_name


def test_case_insensitive_exact_match() -> None:
    assert match_profile_name("gpt4", ["GPT4", "claude"]) == "GPT4"
    assert match_profile_name("  Claude ", ["GPT4", "claude"]) == "claude"


def test_substring_match_prefers_shortest_candidate() -> None:
    candidates = ["Claude Sonnet Backup", "Claude Sonnet", "Opus"]
    assert match_profile_name("sonnet", candidates) == "Claude Sonnet"


def test_similarity_match() -> None:
    assert match_profile_name("claud-opus", ["claude-opus", "gpt-4o"]) == "claude-opus"


def test_no_match() -> None:
    assert match_profile_name("xyz", ["claude", "gpt"]) is None
    assert match_profile_name("", ["claude"]) is None
    assert match_profile_name("claude", []) is None


def test_cutoff_is_respected() -> None:
    assert match_profile_name("claud-opus", ["claude-opus"], cutoff=0.99) is None
