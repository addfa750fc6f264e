"""Tests for channel speaker selection."""

import random

import pytest

from aibitat.engine import AIbitat, ChatRecord, clean_speaker_name
from aibitat.errors import UnknownParticipantError
from aibitat.utils import LogCapture

CHANNEL = "#pets"
MEMBERS = ["dog", "cat", "mouse"]


async def complete(provider, messages):
    return await provider.complete(messages)


def make_engine(provider, members=MEMBERS, chats=None, **channel_kwargs) -> AIbitat:
    aibitat = AIbitat(provider=provider, chats=chats, seed=3)
    aibitat.agent("human")
    for member in members:
        aibitat.agent(member, role=f"You are a {member}.")
    return aibitat.channel(CHANNEL, members, **channel_kwargs)


class TestCleanSpeakerName:
    """Tests for clean_speaker_name."""

    def test_strips_decoration(self) -> None:
        """Test removal of brackets, quotes and mention marks."""
        assert clean_speaker_name("[cat]") == "cat"
        assert clean_speaker_name("  @mouse\n") == "mouse"
        assert clean_speaker_name('"dog"') == "dog"
        assert clean_speaker_name("`cat`") == "cat"

    def test_empty_answers(self) -> None:
        """Test that missing answers clean to an empty name."""
        assert clean_speaker_name(None) == ""
        assert clean_speaker_name("") == ""
        assert clean_speaker_name("[]") == ""

    def test_keeps_inner_text(self) -> None:
        """Test that only the edges are stripped."""
        assert clean_speaker_name("[big cat]") == "big cat"


class TestCandidates:
    """Tests for SpeakerSelector.candidates."""

    def test_all_members_at_start(self, provider) -> None:
        """Test that every member may speak first."""
        aibitat = make_engine(provider)

        assert aibitat.selector.candidates(aibitat.participants.get_channel(CHANNEL)) == MEMBERS

    def test_last_speaker_excluded(self, provider) -> None:
        """Test that the member who spoke last is left out."""
        chats = [ChatRecord("human", CHANNEL, "hi"), ChatRecord("cat", CHANNEL, "meow")]
        aibitat = make_engine(provider, chats=chats)

        candidates = aibitat.selector.candidates(aibitat.participants.get_channel(CHANNEL))

        assert candidates == ["dog", "mouse"]

    def test_single_candidate_is_kept(self, provider) -> None:
        """Test that the last speaker stays when nobody else is left."""
        chats = [ChatRecord("dog", CHANNEL, "woof")]
        aibitat = make_engine(provider, members=["dog"], chats=chats)

        candidates = aibitat.selector.candidates(aibitat.participants.get_channel(CHANNEL))

        assert candidates == ["dog"]

    def test_exhausted_channel_has_no_candidates(self, provider) -> None:
        """Test that a spent channel budget leaves nobody to speak."""
        chats = [ChatRecord("dog", CHANNEL, "woof")]
        aibitat = make_engine(provider, chats=chats, max_rounds=1)

        assert aibitat.selector.candidates(aibitat.participants.get_channel(CHANNEL)) == []

    def test_unknown_member_raises(self, provider) -> None:
        """Test that unregistered members are reported."""
        aibitat = AIbitat(provider=provider).agent("dog").channel(CHANNEL, ["dog", "ghost"])

        with pytest.raises(UnknownParticipantError):
            aibitat.selector.candidates(aibitat.participants.get_channel(CHANNEL))


class TestSelect:
    """Tests for SpeakerSelector.select."""

    @pytest.mark.asyncio
    async def test_accepts_valid_suggestion(self, make_provider) -> None:
        """Test that a decorated but valid answer is used."""
        provider = make_provider(["[mouse]"])
        aibitat = make_engine(provider)

        speaker = await aibitat.selector.select(
            aibitat.participants.get_channel(CHANNEL), provider, complete
        )

        assert speaker == "mouse"

    @pytest.mark.asyncio
    async def test_prompt_lists_candidates_with_roles(self, make_provider) -> None:
        """Test the selection prompt."""
        provider = make_provider(["dog"])
        chats = [ChatRecord("human", CHANNEL, "who is hungry?")]
        aibitat = make_engine(provider, chats=chats, role="Pick the hungriest pet.")

        await aibitat.selector.select(aibitat.participants.get_channel(CHANNEL), provider, complete)

        system, prompt = provider.calls[0]
        assert system.content == "Pick the hungriest pet."
        assert "[cat]: You are a cat." in prompt.content
        assert "[human]: who is hungry?" in prompt.content
        assert "Only return the role." in prompt.content

    @pytest.mark.asyncio
    async def test_invalid_answer_falls_back_to_random(self, make_provider) -> None:
        """Test that unusable answers are replaced by a seeded random pick."""
        provider = make_provider(["I think the parrot should talk"])
        aibitat = make_engine(provider)

        speaker = await aibitat.selector.select(
            aibitat.participants.get_channel(CHANNEL), provider, complete
        )

        assert speaker == random.Random(3).choice(MEMBERS)

    @pytest.mark.asyncio
    async def test_registered_non_member_is_rejected(self, make_provider) -> None:
        """Test that naming an agent outside the candidates is not accepted."""
        provider = make_provider(["human"])
        aibitat = make_engine(provider)

        speaker = await aibitat.selector.select(
            aibitat.participants.get_channel(CHANNEL), provider, complete
        )

        assert speaker in MEMBERS

    @pytest.mark.asyncio
    async def test_excluded_speaker_is_rejected(self, make_provider) -> None:
        """Test that the last speaker is not accepted even when named."""
        provider = make_provider(["cat"])
        chats = [ChatRecord("cat", CHANNEL, "meow")]
        aibitat = make_engine(provider, chats=chats)

        speaker = await aibitat.selector.select(
            aibitat.participants.get_channel(CHANNEL), provider, complete
        )

        assert speaker in ("dog", "mouse")

    @pytest.mark.asyncio
    async def test_no_candidates_skips_provider(self, provider) -> None:
        """Test that nobody is picked when the budget is spent."""
        chats = [ChatRecord("dog", CHANNEL, "woof")]
        aibitat = make_engine(provider, chats=chats, max_rounds=1)

        speaker = await aibitat.selector.select(
            aibitat.participants.get_channel(CHANNEL), provider, complete
        )

        assert speaker is None
        assert provider.call_count == 0

    @pytest.mark.asyncio
    async def test_underpopulated_warning_logged_once(self, make_provider) -> None:
        """Test the warning for channels with fewer than three members."""
        provider = make_provider(["dog"])
        aibitat = make_engine(provider, members=["dog", "cat"])
        channel = aibitat.participants.get_channel(CHANNEL)

        with LogCapture() as capture:
            await aibitat.selector.select(channel, provider, complete)
            await aibitat.selector.select(channel, provider, complete)

        warnings = [m for m in capture.messages if "underpopulated" in m]
        assert len(warnings) == 1
        assert "Direct communication would be more efficient" in warnings[0]

    @pytest.mark.asyncio
    async def test_seed_makes_fallback_reproducible(self, make_provider) -> None:
        """Test that equal seeds give equal fallback picks."""
        picks = []
        for _ in range(2):
            provider = make_provider(["nobody"])
            aibitat = make_engine(provider)
            channel = aibitat.participants.get_channel(CHANNEL)
            picks.append([await aibitat.selector.select(channel, provider, complete) for _ in range(5)])

        assert picks[0] == picks[1]
