"""Dispatch engine for AIbitat conversations.

The AIbitat engine routes turns between participants:
1. Recording the seed message and handing the turn to its recipient
2. Relaying turns addressed to channels to a selected member
3. Generating replies, running function calls on the way
4. Pausing on interrupts and provider errors, ending on TERMINATE
5. Notifying observers of every step
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from functools import partial
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Optional, Union

from aibitat.errors import (
    APIError,
    ConversationStateError,
    MaximumRoundsError,
    RegistrationError,
    ServerError,
    UnknownParticipantError,
)
from aibitat.functions import Function, FunctionRegistry
from aibitat.providers import PROVIDERS, Provider, get_provider_from_settings
from aibitat.providers.functions import FunctionDefinition
from aibitat.providers.types import Completion, Message

from .events import ConversationListener, EventCallback, EventNotifier, EventType
from .ledger import ChatRecord, ChatState, Ledger, RecordLike, Route
from .prompts import INTERRUPT, TERMINATE, format_group_reply_prompt
from .registry import (
    AgentConfig,
    ChannelConfig,
    InterruptPolicy,
    ParticipantKind,
    ParticipantRegistry,
    ProviderOverride,
)
from .replies import FunctionCallLoop
from .selector import SpeakerSelector

if TYPE_CHECKING:
    from aibitat.config import ScenarioConfig, Settings
    from aibitat.config.settings import ProviderConfig
    from aibitat.plugins import Plugin

logger = logging.getLogger(__name__)

FunctionLike = Union[Function, dict[str, Any], Iterable[Union[Function, dict[str, Any]]]]


class AIbitat:
    """Multi-agent conversation engine.

    Participants, channels and functions are registered up front with the
    chainable ``agent``, ``channel`` and ``function`` methods. A conversation
    runs with ``start`` and, once paused, moves on with ``continue_`` or
    ``retry``. Changing registrations while a dispatch is in flight is not
    supported.

    Example:
        >>> aibitat = AIbitat(provider=provider).agent("user", interrupt="ALWAYS").agent("bot")
        >>> await aibitat.start("user", "bot", "2 + 2 = 4?")
        >>> aibitat.chats[-1].content
    """

    def __init__(
        self,
        provider: ProviderOverride = None,
        model: Optional[str] = None,
        chats: Optional[Iterable[RecordLike]] = None,
        max_rounds: int = 100,
        interrupt: Union[InterruptPolicy, str, None] = None,
        max_function_calls: int = 10,
        provider_timeout: Optional[float] = None,
        seed: Optional[int] = None,
        settings: Optional["Settings"] = None,
        selector_provider: ProviderOverride = None,
    ):
        """Initialize the engine.

        Args:
            provider: Default provider, or its name; built from settings when None
            model: Model for a provider given by name
            chats: Records to pre-seed the ledger with
            max_rounds: Successful messages allowed between two agents
            interrupt: Interrupt policy for participants that set none
            max_function_calls: Function calls allowed in one turn
            provider_timeout: Seconds before a provider call counts as a server error
            seed: Seed for the speaker selector's random fallback
            settings: Settings used to build providers, loaded when needed
            selector_provider: Provider picking channel speakers when the
                channel sets none
        """
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        if max_function_calls < 1:
            raise ValueError("max_function_calls must be at least 1")

        self.settings = settings
        self.max_rounds = max_rounds
        self.default_interrupt = InterruptPolicy.coerce(interrupt)
        self.provider_timeout = provider_timeout

        self._check_provider_name(provider, "default provider")
        self._check_provider_name(selector_provider, "selector provider")
        self._provider_override = provider
        self._model = model
        self._selector_override = selector_provider
        self._providers: dict[tuple[str, str, Optional[str]], Provider] = {}

        self.ledger = Ledger(chats)
        self.participants = ParticipantRegistry()
        self.functions = FunctionRegistry()
        self.events = EventNotifier()
        self.rng = random.Random(seed)
        self.selector = SpeakerSelector(
            participants=self.participants,
            ledger=self.ledger,
            is_exhausted=self.has_reached_maximum_rounds,
            rng=self.rng,
        )
        self.function_loop = FunctionCallLoop(
            functions=self.functions,
            max_function_calls=max_function_calls,
        )
        self.plugins: dict[str, "Plugin"] = {}
        self._cost = 0.0
        self._running = False
        self._queued: deque[Callable[[], Awaitable[None]]] = deque()

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def agent(
        self,
        name: str,
        role: Optional[str] = None,
        interrupt: Union[InterruptPolicy, str, None] = None,
        functions: Optional[Iterable[str]] = None,
        kind: Union[ParticipantKind, str] = ParticipantKind.AGENT,
        provider: ProviderOverride = None,
        model: Optional[str] = None,
    ) -> "AIbitat":
        """Register an agent, replacing any previous one with the same name.

        Args:
            name: Unique participant name
            role: System prompt, defaulting by kind
            interrupt: NEVER or ALWAYS; engine default, then kind default when None
            functions: Names of the functions the agent may call
            kind: ``agent`` or ``assistant``
            provider: Provider instance or name used for this agent's replies
            model: Model for a provider given by name

        Returns:
            The engine, for chaining
        """
        self._check_provider_name(provider, name)
        try:
            kind = ParticipantKind(kind)
        except ValueError as e:
            raise RegistrationError(name, f"unknown participant kind '{kind}'") from e

        self.participants.add_agent(
            AgentConfig(
                name=name,
                role=role,
                interrupt=InterruptPolicy.coerce(interrupt),
                functions=list(functions or []),
                kind=kind,
                provider=provider,
                model=model,
            )
        )
        logger.debug(f"Registered {kind.value}: {name}")
        return self

    def channel(
        self,
        name: str,
        members: Iterable[str],
        max_rounds: int = 10,
        role: Optional[str] = None,
        provider: ProviderOverride = None,
        model: Optional[str] = None,
    ) -> "AIbitat":
        """Register a channel relaying turns to its members.

        Args:
            name: Unique channel name, not shared with any agent
            members: Agent names, in order
            max_rounds: Member messages the channel accepts
            role: System prompt used for speaker selection
            provider: Provider instance or name picking the next speaker
            model: Model for a provider given by name

        Returns:
            The engine, for chaining
        """
        self._check_provider_name(provider, name)
        config = ChannelConfig(
            name=name,
            members=list(members),
            max_rounds=max_rounds,
            role=role,
            provider=provider,
            model=model,
        )
        self.participants.add_channel(config)
        logger.debug(f"Registered channel: {name} ({', '.join(config.members)})")
        return self

    def function(self, *functions: FunctionLike) -> "AIbitat":
        """Register functions agents may call.

        Accepts ``Function`` objects, ``{name, description, parameters, handler}``
        dicts, or lists of either.

        Returns:
            The engine, for chaining
        """
        for item in functions:
            if isinstance(item, Function):
                self.functions.register(item)
            elif isinstance(item, dict):
                self.functions.register(Function.from_dict(item))
            elif isinstance(item, (list, tuple)):
                self.function(*item)
            else:
                raise RegistrationError(repr(item), "expected a Function, dict or list")
        return self

    def use(self, plugin: "Plugin") -> "AIbitat":
        """Install a plugin.

        Returns:
            The engine, for chaining
        """
        plugin.setup(self)
        self.plugins[plugin.name] = plugin
        logger.debug(f"Installed plugin: {plugin.name}")
        return self

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def on_start(self, callback: EventCallback) -> "AIbitat":
        """Call ``callback(record)`` when a conversation starts."""
        self.events.on(EventType.START, callback)
        return self

    def on_message(self, callback: EventCallback) -> "AIbitat":
        """Call ``callback(record)`` for every successful message."""
        self.events.on(EventType.MESSAGE, callback)
        return self

    def on_interrupt(self, callback: EventCallback) -> "AIbitat":
        """Call ``callback(record)`` when the chat pauses for feedback."""
        self.events.on(EventType.INTERRUPT, callback)
        return self

    def on_terminate(self, callback: EventCallback) -> "AIbitat":
        """Call ``callback(route)`` when the chat ends."""
        self.events.on(EventType.TERMINATE, callback)
        return self

    def on_error(self, callback: EventCallback) -> "AIbitat":
        """Call ``callback(error, record)`` when a provider error is recorded."""
        self.events.on(EventType.ERROR, callback)
        return self

    def add_listener(self, listener: ConversationListener) -> "AIbitat":
        """Subscribe a listener to every event."""
        self.events.subscribe(listener)
        return self

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def chats(self) -> tuple[ChatRecord, ...]:
        """Snapshot of the conversation ledger."""
        return self.ledger.snapshot()

    @property
    def cost(self) -> float:
        """Accumulated provider cost of this conversation."""
        return self._cost

    def should_interrupt(self, name: str) -> bool:
        """Resolve whether the chat pauses before ``name`` speaks.

        Channels never pause; only agents carry an interrupt policy.
        """
        if self.participants.is_channel(name):
            return False
        agent = self.participants.get_agent(name)
        policy = agent.interrupt or self.default_interrupt or agent.default_interrupt
        return policy is InterruptPolicy.ALWAYS

    def has_reached_maximum_rounds(self, a: str, b: str) -> bool:
        """Check whether the budget between two parties is spent.

        When either party is a channel, the channel's own limit applies to
        its members' messages. Otherwise the engine limit applies to the
        messages exchanged between the two.
        """
        channel = self.participants.get_channel(a) or self.participants.get_channel(b)
        if channel is not None:
            rounds = self.ledger.channel_rounds(channel.name, channel.members)
            return rounds >= channel.max_rounds
        return self.ledger.pairwise_rounds(a, b) >= self.max_rounds

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def start(self, sender: str, recipient: str, content: str) -> "AIbitat":
        """Start a conversation with a seed message.

        Args:
            sender: Participant the message comes from
            recipient: Participant or channel it is addressed to
            content: Message text

        Returns:
            The engine, once the chat terminates or pauses

        Raises:
            UnknownParticipantError: If either name is not registered
        """
        for name in (sender, recipient):
            if name not in self.participants:
                raise UnknownParticipantError(name)

        await self._run(partial(self._begin, Route(sender, recipient), content))
        return self

    async def continue_(self, feedback: Optional[str] = None) -> "AIbitat":
        """Resume a chat paused on an interrupt.

        Called from an event callback while the engine is dispatching, the
        resumption is queued and runs once the current step has returned.

        Args:
            feedback: Message to send on behalf of the interrupted party; the
                party's own reply is generated when empty

        Returns:
            The engine, once the chat terminates or pauses again

        Raises:
            ConversationStateError: If the chat is not paused on an interrupt,
                or feedback is given for a channel
            MaximumRoundsError: If the interrupted route has no rounds left
        """
        await self._run(partial(self._resume, feedback))
        return self

    async def retry(self) -> "AIbitat":
        """Replay the turn that failed with a provider error.

        Queued like ``continue_`` when called from an event callback.

        Raises:
            ConversationStateError: If the chat is not paused on an error
        """
        await self._run(self._replay)
        return self

    async def _run(self, step: Callable[[], Awaitable[None]]) -> None:
        """Run ``step`` and then every step queued by callbacks meanwhile."""
        self._queued.append(step)
        if self._running:
            return

        self._running = True
        try:
            while self._queued:
                await self._queued.popleft()()
        finally:
            self._running = False
            self._queued.clear()

    async def _begin(self, route: Route, content: str) -> None:
        logger.info(f"Starting a chat from {route.sender} to {route.recipient}")
        record = ChatRecord.success(route, content)
        self.ledger.append(record)
        await self.events.notify(EventType.START, record)
        await self.events.notify(EventType.MESSAGE, record)
        await self._dispatch(route.reversed())

    async def _resume(self, feedback: Optional[str]) -> None:
        tail = self.ledger.tail
        if (
            feedback
            and tail is not None
            and tail.state is ChatState.INTERRUPT
            and self.participants.is_channel(tail.sender)
        ):
            # Channels relay turns; they never author messages
            raise ConversationStateError(
                f"Channel '{tail.sender}' cannot send feedback, continue without it",
                expected_state=ChatState.INTERRUPT.value,
            )

        route = self.ledger.pop_pending(ChatState.INTERRUPT).route
        if self.has_reached_maximum_rounds(route.sender, route.recipient):
            raise MaximumRoundsError(route.sender, route.recipient)

        if not feedback:
            logger.debug(f"Continuing {route} with an automatic reply")
            await self._dispatch(route)
            return

        logger.debug(f"Continuing {route} with feedback")
        await self._record_message(ChatRecord.success(route, feedback))
        if self.has_reached_maximum_rounds(route.sender, route.recipient):
            await self._terminate(route)
            return
        await self._dispatch(route.reversed())

    async def _replay(self) -> None:
        record = self.ledger.pop_pending(ChatState.ERROR)
        logger.info(f"Retrying {record.route}")
        await self._dispatch(record.route)

    async def _dispatch(self, route: Optional[Route]) -> None:
        """Run steps until the chat terminates or pauses."""
        while route is not None:
            if self.participants.is_channel(route.sender):
                route = await self._relay(route)
            else:
                route = await self._turn(route)

    async def _relay(self, route: Route) -> Optional[Route]:
        """Hand a turn addressed to a channel to one of its members."""
        channel = self.participants.get_channel(route.sender)
        provider = self._selector_provider(channel)

        try:
            speaker = await self.selector.select(channel, provider, self.complete)
        except APIError as e:
            await self._record_error(route, e)
            return None

        if speaker is None:
            await self._terminate(route)
            return None

        next_route = Route(sender=speaker, recipient=channel.name)
        if self.should_interrupt(speaker) or self.has_reached_maximum_rounds(speaker, channel.name):
            await self._interrupt(next_route)
            return None
        return next_route

    async def _turn(self, route: Route) -> Optional[Route]:
        """Let ``route.sender`` reply to ``route.recipient``."""
        try:
            content = await self.reply(route)
        except APIError as e:
            await self._record_error(route, e)
            return None

        if content == TERMINATE or self.has_reached_maximum_rounds(route.sender, route.recipient):
            await self._terminate(route)
            return None

        if content == INTERRUPT or self.should_interrupt(route.recipient):
            await self._interrupt(route.reversed())
            return None

        return route.reversed()

    async def reply(self, route: Route) -> str:
        """Generate, record and return ``route.sender``'s reply."""
        speaker = self.participants.get_agent(route.sender)
        provider = self._provider_for(speaker.provider, speaker.model)
        messages = [Message.system(speaker.resolved_role), *self._history_messages(route)]

        reply = await self.function_loop.run(
            participant=speaker.name,
            provider=provider,
            messages=messages,
            function_names=speaker.functions,
            complete=self.complete,
        )
        await self._record_message(ChatRecord.success(route, reply.content))
        return reply.content

    def _history_messages(self, route: Route) -> list[Message]:
        """Conversation context for a reply from ``route.sender``."""
        if self.participants.is_channel(route.recipient):
            history = self.ledger.history(recipient=route.recipient)
            return [Message.user(format_group_reply_prompt(route.sender, history))]

        return [
            Message.user(r.content) if r.sender == route.recipient else Message.assistant(r.content)
            for r in self.ledger.history(route.sender, route.recipient)
        ]

    async def complete(
        self,
        provider: Provider,
        messages: list[Message],
        functions: Optional[list[FunctionDefinition]] = None,
    ) -> Completion:
        """Run one provider completion, bounded by ``provider_timeout``.

        Its cost is added to the conversation cost.
        """
        if self.provider_timeout:
            try:
                completion = await asyncio.wait_for(
                    provider.complete(messages, functions),
                    timeout=self.provider_timeout,
                )
            except asyncio.TimeoutError as e:
                raise ServerError(
                    f"Provider did not answer within {self.provider_timeout}s",
                    provider=getattr(provider, "name", None),
                ) from e
        else:
            completion = await provider.complete(messages, functions)

        self._cost += completion.cost
        return completion

    async def _record_message(self, record: ChatRecord) -> None:
        self.ledger.append(record)
        await self.events.notify(EventType.MESSAGE, record)

    async def _record_error(self, route: Route, error: APIError) -> None:
        logger.warning(f"Provider error on {route}: {error}")
        record = ChatRecord.error(route, error.message)
        self.ledger.append(record)
        await self.events.notify(EventType.ERROR, error, record)

    async def _interrupt(self, route: Route) -> None:
        logger.debug(f"Interrupting before {route}")
        record = ChatRecord.interrupt(route)
        self.ledger.append(record)
        await self.events.notify(EventType.INTERRUPT, record)

    async def _terminate(self, route: Route) -> None:
        logger.info(f"Chat terminated at {route}")
        await self.events.notify(EventType.TERMINATE, route)

    # -------------------------------------------------------------------------
    # Providers
    # -------------------------------------------------------------------------

    @staticmethod
    def _check_provider_name(provider: ProviderOverride, owner: str) -> None:
        if isinstance(provider, str) and provider not in PROVIDERS:
            raise RegistrationError(
                owner, f"unknown provider '{provider}', use one of {list(PROVIDERS)}"
            )

    def _get_settings(self) -> "Settings":
        if self.settings is None:
            from aibitat.config import get_settings

            self.settings = get_settings()
        return self.settings

    def _build_provider(
        self,
        section: str,
        name: Optional[str] = None,
        model: Optional[str] = None,
    ) -> Provider:
        """Build a provider from a settings section, caching per name and model."""
        settings = self._get_settings()
        config: "ProviderConfig" = getattr(settings, section)
        if name is not None and name != config.name:
            # The section's model belongs to another provider
            config = config.model_copy(update={"name": name, "model": None})

        key = (section, config.name, model)
        if key not in self._providers:
            self._providers[key] = get_provider_from_settings(config, settings, model=model)
            logger.debug(f"Built provider {self._providers[key]!r} for {section}")
        return self._providers[key]

    @property
    def default_provider(self) -> Provider:
        """Provider for participants without an override."""
        if isinstance(self._provider_override, Provider):
            return self._provider_override
        return self._build_provider("provider", self._provider_override, self._model)

    def _provider_for(self, override: ProviderOverride, model: Optional[str]) -> Provider:
        if isinstance(override, Provider):
            return override
        if isinstance(override, str):
            return self._build_provider("provider", override, model)
        return self.default_provider

    def _selector_provider(self, channel: ChannelConfig) -> Provider:
        if channel.provider is not None:
            return self._provider_for(channel.provider, channel.model)
        if isinstance(self._selector_override, Provider):
            return self._selector_override
        return self._build_provider("selector", self._selector_override)


def create_aibitat(
    settings: Optional["Settings"] = None,
    scenario: Optional["ScenarioConfig"] = None,
) -> AIbitat:
    """Factory function to create an engine from configuration.

    Args:
        settings: Application settings, loaded when None
        scenario: Agents, channels and plugins to register

    Returns:
        Configured AIbitat instance
    """
    if settings is None:
        from aibitat.config import get_settings

        settings = get_settings()

    engine = settings.engine
    aibitat = AIbitat(
        max_rounds=engine.max_rounds,
        interrupt=engine.interrupt,
        max_function_calls=engine.max_function_calls,
        provider_timeout=engine.provider_timeout,
        seed=engine.seed,
        settings=settings,
    )

    if scenario is None:
        return aibitat

    if scenario.max_rounds is not None:
        aibitat.max_rounds = scenario.max_rounds
    if scenario.interrupt is not None:
        aibitat.default_interrupt = InterruptPolicy(scenario.interrupt)
    if scenario.plugins:
        from aibitat.plugins import WebBrowsingPlugin

        scenario_plugins = {"web-browsing": WebBrowsingPlugin.from_settings}
        for plugin_name in scenario.plugins:
            aibitat.use(scenario_plugins[plugin_name](settings))

    for name, agent in scenario.agents.items():
        aibitat.agent(
            name,
            role=agent.role,
            interrupt=agent.interrupt,
            functions=agent.functions,
            kind=agent.kind,
            provider=agent.provider,
            model=agent.model,
        )
    for name, channel in scenario.channels.items():
        aibitat.channel(
            name,
            channel.members,
            max_rounds=channel.max_rounds,
            role=channel.role,
            provider=channel.provider,
            model=channel.model,
        )
    return aibitat
