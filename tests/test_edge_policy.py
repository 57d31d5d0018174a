from comanda.core.edge_policy import EDGE_POLICY, EdgeAction, EdgeCase, is_silent, policy_for


def test_every_edge_case_has_an_action() -> None:
    assert set(EDGE_POLICY) == set(EdgeCase)


def test_expected_actions() -> None:
    assert policy_for(EdgeCase.BAD_SIGNATURE) == EdgeAction.REJECT
    assert policy_for(EdgeCase.DUPLICATE_DELIVERY) == EdgeAction.SILENT_DROP
    assert policy_for(EdgeCase.QUOTA_EXCEEDED) == EdgeAction.REFUSE
    assert policy_for(EdgeCase.SIDE_EFFECT_FAILED) == EdgeAction.WARN
    assert policy_for(EdgeCase.INVARIANT_VIOLATION) == EdgeAction.FAIL_EVENT


def test_silent_cases() -> None:
    assert is_silent(EdgeCase.RATE_LIMITED)
    assert is_silent(EdgeCase.UNEXTRACTABLE_EVENT)
    assert not is_silent(EdgeCase.EXTRACTION_FAILED)
