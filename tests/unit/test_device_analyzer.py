"""Unit tests for the device analyzer."""

import pytest

from src.domains.fraud.analyzers.device import DeviceAnalyzer, DeviceSignals, is_insecure_user_agent
from src.domains.fraud.config import FraudConfig
from src.domains.fraud.fingerprint import fingerprint_id, generate_device_fingerprint
from src.domains.fraud.models import DeviceAttributes, DeviceFingerprint
from tests.conftest import DESKTOP, USER_ID, make_context, make_source

CONFIG = FraudConfig()
DESKTOP_ID = fingerprint_id(DESKTOP)
BOT = DeviceAttributes(user_agent="Googlebot/2.1 (+http://www.google.com/bot.html)", platform="Linux")


def _known(trust_score: int = 80, users=(USER_ID,)) -> DeviceFingerprint:
    return DeviceFingerprint(
        id=DESKTOP_ID, trust_score=trust_score, associated_users=frozenset(users), attributes=DESKTOP
    )


def _codes(reasons) -> list[str]:
    return [r.code for r in reasons]


class TestInsecureUserAgent:
    @pytest.mark.parametrize(
        "agent",
        ["Googlebot/2.1", "SomeCrawler/1.0", "SPIDER-x", "price-scraper 3.2"],
    )
    def test_flags_automation_agents(self, agent):
        assert is_insecure_user_agent(agent, CONFIG.device.insecure_agent_patterns)

    def test_regular_browser_not_flagged(self):
        assert not is_insecure_user_agent(DESKTOP.user_agent, CONFIG.device.insecure_agent_patterns)


class TestDeviceRules:
    def test_known_trusted_device_scores_zero(self):
        signals = DeviceSignals(fingerprint=generate_device_fingerprint(DESKTOP), history=[_known()])
        score, reasons = DeviceAnalyzer().evaluate(make_context(), signals, CONFIG)
        assert score == 0
        assert reasons == []

    def test_unknown_device(self):
        signals = DeviceSignals(fingerprint=generate_device_fingerprint(DESKTOP), history=[])
        score, reasons = DeviceAnalyzer().evaluate(make_context(), signals, CONFIG)
        assert score == 20
        assert _codes(reasons) == ["UNKNOWN_DEVICE"]

    def test_low_trust_known_device(self):
        signals = DeviceSignals(
            fingerprint=generate_device_fingerprint(DESKTOP), history=[_known(trust_score=49)]
        )
        score, reasons = DeviceAnalyzer().evaluate(make_context(), signals, CONFIG)
        assert score == 15
        assert _codes(reasons) == ["LOW_DEVICE_TRUST"]

    def test_trust_at_threshold_is_not_low(self):
        signals = DeviceSignals(
            fingerprint=generate_device_fingerprint(DESKTOP), history=[_known(trust_score=50)]
        )
        score, _ = DeviceAnalyzer().evaluate(make_context(), signals, CONFIG)
        assert score == 0

    def test_unknown_and_low_trust_are_exclusive(self):
        other = DeviceFingerprint(id="fp_other", trust_score=10)
        signals = DeviceSignals(fingerprint=generate_device_fingerprint(DESKTOP), history=[other])
        _, reasons = DeviceAnalyzer().evaluate(make_context(), signals, CONFIG)
        assert _codes(reasons) == ["UNKNOWN_DEVICE"]

    def test_shared_device_from_history(self):
        signals = DeviceSignals(
            fingerprint=generate_device_fingerprint(DESKTOP),
            history=[_known(users=("u1", "u2", "u3", "u4"))],
        )
        score, reasons = DeviceAnalyzer().evaluate(make_context(), signals, CONFIG)
        assert score == 15
        assert _codes(reasons) == ["MULTIPLE_USERS_DEVICE"]

    def test_shared_device_from_generated_fingerprint(self):
        fingerprint = generate_device_fingerprint(DESKTOP).model_copy(
            update={"associated_users": frozenset({"u1", "u2", "u3", "u4"})}
        )
        signals = DeviceSignals(fingerprint=fingerprint, history=[])
        score, reasons = DeviceAnalyzer().evaluate(make_context(), signals, CONFIG)
        assert score == 35
        assert _codes(reasons) == ["UNKNOWN_DEVICE", "MULTIPLE_USERS_DEVICE"]

    def test_three_users_is_allowed(self):
        signals = DeviceSignals(
            fingerprint=generate_device_fingerprint(DESKTOP),
            history=[_known(users=("u1", "u2", "u3"))],
        )
        score, _ = DeviceAnalyzer().evaluate(make_context(), signals, CONFIG)
        assert score == 0

    def test_insecure_agent_checks_context_user_agent(self):
        signals = DeviceSignals(fingerprint=generate_device_fingerprint(DESKTOP), history=[_known()])
        score, reasons = DeviceAnalyzer().evaluate(
            make_context(user_agent="curl-bot/1.0"), signals, CONFIG
        )
        assert score == 10
        assert _codes(reasons) == ["INSECURE_BROWSER"]


class TestDeviceAnalyze:
    @pytest.mark.asyncio
    async def test_maximum_device_score(self):
        shared = generate_device_fingerprint(BOT).model_copy(
            update={"associated_users": frozenset({"u1", "u2", "u3", "u4"})}
        )
        source = make_source(known_fingerprints={shared.id: shared})
        context = make_context(user_agent=BOT.user_agent, device_attributes=BOT)

        result = await DeviceAnalyzer().analyze(context, source, CONFIG)

        assert result.score == 45
        assert _codes(result.reasons) == [
            "UNKNOWN_DEVICE",
            "MULTIPLE_USERS_DEVICE",
            "INSECURE_BROWSER",
        ]

    @pytest.mark.asyncio
    async def test_attributes_default_to_user_agent(self):
        # Without explicit attributes the fingerprint is derived from the user agent only
        context = make_context(device_attributes=None)
        result = await DeviceAnalyzer().analyze(context, make_source(), CONFIG)
        assert _codes(result.reasons) == ["UNKNOWN_DEVICE"]
