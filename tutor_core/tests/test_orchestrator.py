"""测试回复编排器的逐层降级行为。"""

import logging
import random
import threading
import time

import httpx
import pytest

from tutor_core.credentials.resolver import CredentialResolver
from tutor_core.domain.exceptions import CredentialLookupError, ProviderTimeoutError, ResolutionCancelled
from tutor_core.domain.models import ProviderResult, Tier, UserIdentity
from tutor_core.infrastructure.storage.json_store import JsonCredentialStore
from tutor_core.pipeline.orchestrator import ResponseOrchestrator
from tutor_core.providers.edge_function_client import EdgeFunctionClient
from tutor_core.providers.registry import GENERIC_CONFIG, PERSONALIZED_CONFIG
from tutor_core.responders.heuristic import DEFAULT_POOL, DEFAULT_RULES, HeuristicResponder

USER = UserIdentity(id="u1", email="u1@example.com")


class FakeProvider:
    """按顺序返回预设结果的 Provider。"""

    def __init__(self, name, *results, on_invoke=None):
        self.name = name
        self._results = list(results)
        self._on_invoke = on_invoke
        self.requests = []
        self.timeouts = []

    @property
    def calls(self):
        return len(self.requests)

    def invoke(self, req, timeout):
        self.requests.append(req)
        self.timeouts.append(timeout)
        if self._on_invoke is not None:
            self._on_invoke()
        result = self._results.pop(0) if self._results else ProviderResult.failure(self.name, "NO_MORE_RESULTS")
        if isinstance(result, Exception):
            raise result
        return result


class StoreStub:
    def __init__(self, value=None, exc=None):
        self.value = value
        self.exc = exc

    def get_credential(self, user_id, timeout=None):
        if self.exc is not None:
            raise self.exc
        return self.value


def _ok(name, text):
    return ProviderResult.success(name, text)


def _fail(name, reason="API_ERROR: 500"):
    return ProviderResult.failure(name, reason)


def _orchestrator(credential=None, personalized=None, generic=None, **kw):
    personalized = personalized or FakeProvider("personalized")
    generic = generic or FakeProvider("generic")
    orch = ResponseOrchestrator(
        resolver=CredentialResolver(StoreStub(value=credential), timeout=1.0),
        personalized=personalized,
        generic=generic,
        responder=HeuristicResponder(rng=random.Random(0)),
        personalized_timeout=kw.pop("personalized_timeout", 5.0),
        generic_timeout=kw.pop("generic_timeout", 5.0),
        **kw,
    )
    return orch, personalized, generic


def test_personalized_success():
    orch, p, g = _orchestrator(
        credential="sk",
        personalized=FakeProvider("personalized", _ok("personalized", "Use your own key answer")),
    )
    outcome = orch.run("Tell me about Bach", user=USER)
    assert outcome.kind == "personalized-success"
    assert outcome.text == "Use your own key answer"
    assert p.calls == 1
    assert p.requests[0].credential == "sk"
    assert g.calls == 0


def test_no_credential_skips_personalized():
    orch, p, g = _orchestrator(
        credential=None,
        generic=FakeProvider("generic", _ok("generic", "generic answer")),
    )
    outcome = orch.run("hello", user=USER)
    assert p.calls == 0
    assert g.calls == 1
    assert outcome.kind == "generic-success"
    skipped = [a for a in outcome.trace.attempts if a.step == "personalized"]
    assert skipped[0].status == "skipped"
    assert skipped[0].reason == "NO_CREDENTIAL"


def test_anonymous_user_skips_personalized():
    orch, p, g = _orchestrator(credential="sk", generic=FakeProvider("generic", _ok("generic", "hi")))
    outcome = orch.run("hello")
    assert p.calls == 0
    assert outcome.tier is Tier.GENERIC


def test_credential_lookup_error_treated_as_absent():
    p = FakeProvider("personalized")
    g = FakeProvider("generic", _ok("generic", "fine"))
    orch = ResponseOrchestrator(
        resolver=CredentialResolver(StoreStub(exc=CredentialLookupError(code="STORE_TIMEOUT", message="slow"))),
        personalized=p,
        generic=g,
    )
    outcome = orch.run("hello", user=USER)
    assert p.calls == 0
    assert outcome.kind == "generic-success"
    assert outcome.trace.credential_found is False


def _bach_with_store(store):
    p = FakeProvider("personalized", _ok("personalized", "unused"))
    g = FakeProvider("generic", _fail("generic"))
    orch = ResponseOrchestrator(
        resolver=CredentialResolver(store, timeout=1.0),
        personalized=p,
        generic=g,
        responder=HeuristicResponder(rng=random.Random(0)),
    )
    return orch.run("Tell me about Bach", user=UserIdentity(id="u1")), p, g


def test_store_raising_unexpected_error_still_replies():
    outcome, p, g = _bach_with_store(StoreStub(exc=RuntimeError("driver bug")))
    assert p.calls == 0
    assert g.calls == 1
    assert outcome.kind == "heuristic-fallback"
    assert outcome.text == DEFAULT_RULES[0].response
    assert outcome.trace.credential_found is False


def test_unreadable_credential_file_still_replies(tmp_path):
    path = tmp_path / "creds.json"
    path.write_bytes(b'{"u1": "\xff\xfe"}')
    outcome, p, _ = _bach_with_store(JsonCredentialStore(path))
    assert p.calls == 0
    assert outcome.text == DEFAULT_RULES[0].response


@pytest.mark.parametrize(
    "personalized_result",
    [
        _fail("personalized", "PROVIDER_TIMEOUT: timed out"),
        _fail("personalized", "NETWORK_ERROR: refused"),
        _fail("personalized", "MALFORMED_RESPONSE: missing 'response'"),
        _ok("personalized", "   "),
        RuntimeError("provider bug"),
    ],
)
def test_personalized_failure_calls_generic_exactly_once(personalized_result):
    orch, p, g = _orchestrator(
        credential="sk",
        personalized=FakeProvider("personalized", personalized_result),
        generic=FakeProvider("generic", _fail("generic")),
    )
    outcome = orch.run("hello", user=USER)
    assert p.calls == 1
    assert g.calls == 1
    assert g.requests[0].credential is None
    assert outcome.kind == "heuristic-fallback"
    assert outcome.text in DEFAULT_POOL
    assert outcome.trace.attempted("generic") == 1


def test_timeout_then_generic_success_is_logged_not_raised(caplog):
    caplog.set_level(logging.INFO, logger="tutor_core")
    timeout_error = ProviderTimeoutError(code="PROVIDER_TIMEOUT", message="timed out")
    orch, p, g = _orchestrator(
        credential="sk",
        personalized=FakeProvider(
            "personalized",
            ProviderResult.failure("personalized", "PROVIDER_TIMEOUT: timed out", error=timeout_error),
        ),
        generic=FakeProvider("generic", _ok("generic", "Try scales slowly.")),
    )
    outcome = orch.run("how do I get faster?", user=USER)
    assert outcome.kind == "generic-success"
    assert outcome.text == "Try scales slowly."
    failures = outcome.trace.failures()
    assert [f.step for f in failures] == ["personalized"]
    assert failures[0].reason.startswith("PROVIDER_TIMEOUT")
    warned = [
        r for r in caplog.records
        if r.levelno == logging.WARNING and getattr(r, "extra", {}).get("tier") == "personalized"
    ]
    assert warned
    resolved = [r for r in caplog.records if r.getMessage() == "Reply resolved"]
    assert resolved[0].extra["outcome"] == "generic-success"


def test_absent_credential_generic_failure_falls_back_to_heuristic():
    orch, p, g = _orchestrator(credential=None, generic=FakeProvider("generic", _fail("generic")))
    outcome = orch.run("Tell me about Bach", user=USER)
    assert outcome.kind == "heuristic-fallback"
    assert outcome.text == DEFAULT_RULES[0].response
    assert p.calls == 0
    assert g.calls == 1


@pytest.mark.parametrize("message", ["", "   ", "x" * 5000, "Chopin?", "你好", None])
def test_always_returns_non_empty_text(message):
    orch, _, _ = _orchestrator(
        credential="sk",
        personalized=FakeProvider("personalized", _fail("personalized")),
        generic=FakeProvider("generic", RuntimeError("boom")),
    )
    outcome = orch.run(message, user=USER)
    assert outcome.text.strip()


def test_tier_timeouts_are_passed_to_providers():
    orch, p, g = _orchestrator(
        credential="sk",
        personalized=FakeProvider("personalized", _fail("personalized")),
        generic=FakeProvider("generic", _ok("generic", "ok")),
        personalized_timeout=2.0,
        generic_timeout=3.0,
    )
    orch.run("hello", user=USER)
    assert 0 < p.timeouts[0] <= 2.0
    assert 0 < g.timeouts[0] <= 3.0


def test_default_deadline_is_sum_of_tier_timeouts():
    orch, _, _ = _orchestrator(personalized_timeout=2.0, generic_timeout=3.0)
    assert orch.deadline == pytest.approx(6.0)


def test_zero_tier_timeout_is_not_replaced_by_default():
    orch, _, _ = _orchestrator(personalized_timeout=0.0, generic_timeout=3.0)
    assert orch.deadline == pytest.approx(4.0)


def test_zero_deadline_calls_no_provider():
    orch, p, g = _orchestrator(
        credential="sk",
        personalized=FakeProvider("personalized", _ok("personalized", "hi")),
        generic=FakeProvider("generic", _ok("generic", "hi")),
        deadline=0.0,
    )
    assert orch.deadline == 0.0
    outcome = orch.run("hello", user=USER)
    assert p.calls == 0
    assert g.calls == 0
    assert outcome.kind == "heuristic-fallback"
    assert {a.step: a.reason for a in outcome.trace.attempts if a.status == "skipped"} == {
        "personalized": "DEADLINE_EXCEEDED",
        "generic": "DEADLINE_EXCEEDED",
    }


def test_deadline_exhausted_skips_remaining_network_tiers():
    p = FakeProvider("personalized", _fail("personalized"), on_invoke=lambda: time.sleep(0.05))
    orch, _, g = _orchestrator(credential="sk", personalized=p, deadline=0.01)
    outcome = orch.run("hello", user=USER)
    assert g.calls == 0
    assert outcome.kind == "heuristic-fallback"
    generic_attempt = [a for a in outcome.trace.attempts if a.step == "generic"][0]
    assert generic_attempt.reason == "DEADLINE_EXCEEDED"


def test_cancel_before_run_calls_nothing():
    event = threading.Event()
    event.set()
    orch, p, g = _orchestrator(credential="sk")
    with pytest.raises(ResolutionCancelled):
        orch.run("hello", user=USER, cancel_event=event)
    assert p.calls == 0
    assert g.calls == 0


def test_cancel_during_provider_call_stops_run():
    event = threading.Event()
    p = FakeProvider("personalized", _ok("personalized", "late answer"), on_invoke=event.set)
    orch, _, g = _orchestrator(credential="sk", personalized=p)
    with pytest.raises(ResolutionCancelled):
        orch.run("hello", user=USER, cancel_event=event)
    assert g.calls == 0
    # 已发出的调用照常完成，等待时长受该层超时约束
    assert p.calls == 1
    assert 0 < p.timeouts[0] <= 5.0


def test_runs_are_independent():
    orch, p, g = _orchestrator(
        credential="sk",
        personalized=FakeProvider("personalized", _ok("personalized", "first"), _fail("personalized")),
        generic=FakeProvider("generic", _ok("generic", "second")),
    )
    first = orch.run("a", user=USER)
    second = orch.run("b", user=USER)
    assert first.kind == "personalized-success"
    assert second.kind == "generic-success"
    assert first.trace.trace_id != second.trace.trace_id


def test_end_to_end_with_edge_function_clients(monkeypatch):
    class SettingsStub:
        supabase_url = "https://proj.supabase.co"
        supabase_anon_key = "anon"
        ai_function_name = "ai-teacher"
        personalized_timeout = 1.0
        generic_timeout = 1.0

    class Resp:
        status_code = 200

        def json(self):
            return {"response": "Try scales slowly."}

    seen = []

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, **_):
            seen.append(json)
            if "apiKey" in json:
                raise httpx.ReadTimeout("timed out")
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)
    orch = ResponseOrchestrator(
        resolver=CredentialResolver(StoreStub(value="sk-user"), timeout=1.0),
        personalized=EdgeFunctionClient(PERSONALIZED_CONFIG, SettingsStub()),
        generic=EdgeFunctionClient(GENERIC_CONFIG, SettingsStub()),
        personalized_timeout=1.0,
        generic_timeout=1.0,
    )
    outcome = orch.run("scales?", user=USER)
    assert outcome.kind == "generic-success"
    assert outcome.text == "Try scales slowly."
    assert len(seen) == 2
    assert seen[0]["apiKey"] == "sk-user"
    assert "apiKey" not in seen[1]
