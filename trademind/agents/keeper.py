"""Leader/follower failover across agent backends.

The keeper resolves one leader and an ordered list of followers from a
name -> agent registry when it is built. Each ``gen_actions`` call tries the
leader first and then every follower strictly in order, one at a time, and
returns the first Decision produced. Nothing is remembered between calls:
every call starts again from the leader.

When the whole chain fails, the leader's exception is raised, since the
leader is the highest-fidelity backend; follower errors are only logged.
"""

from __future__ import annotations

from typing import List, Mapping, Sequence

from trademind.config import KeeperConfig
from trademind.logging_utils import log_agent, log_error, log_info, log_success, log_warning
from trademind.schemas import Decision, Message

from .base import Agent, Session


class AgentNotFoundError(LookupError):
    """Raised at construction when a leader/follower name is not registered."""

    def __init__(self, name: str, available: Sequence[str]) -> None:
        self.name = name
        self.available = list(available)
        known = ", ".join(sorted(self.available)) or "(none)"
        super().__init__(f"Agent not found by name: {name} (registered: {known})")


class AgentStartError(RuntimeError):
    """Raised when an agent in the chain fails to start.

    ``tier`` is "leader" or "follower[<index>]".
    """

    def __init__(self, *, tier: str, agent_name: str, underlying: BaseException) -> None:
        self.tier = tier
        self.agent_name = agent_name
        self.underlying = underlying
        super().__init__(f"Error starting {tier} agent {agent_name}: {underlying}")


def find_agents(
    agents: Mapping[str, Agent],
    leader_name: str,
    follower_names: Sequence[str],
) -> tuple[Agent, List[Agent]]:
    """Resolve the chain by name, failing on the first unknown name."""

    if leader_name not in agents:
        raise AgentNotFoundError(leader_name, list(agents))

    followers: List[Agent] = []
    for follower_name in follower_names:
        if follower_name not in agents:
            raise AgentNotFoundError(follower_name, list(agents))
        followers.append(agents[follower_name])

    return agents[leader_name], followers


class AgentKeeper:
    """Agent that delegates to a static, ordered failover chain.

    The keeper satisfies the Agent protocol itself, so it can be handed to
    anything that expects a single agent.

    Example:
        keeper = AgentKeeper(
            {"claude": claude_agent, "gpt": gpt_agent, "local": ollama_agent},
            leader="claude",
            followers=["gpt", "local"],
        )
        await keeper.start()
        decision = await keeper.gen_actions(session, messages)
    """

    def __init__(
        self,
        agents: Mapping[str, Agent],
        *,
        leader: str,
        followers: Sequence[str] = (),
    ) -> None:
        self.leader, self.followers = find_agents(agents, leader, followers)

    @classmethod
    def from_config(cls, config: KeeperConfig, agents: Mapping[str, Agent]) -> "AgentKeeper":
        return cls(agents, leader=config.leader, followers=config.followers)

    @property
    def name(self) -> str:
        return "keeper"

    async def start(self) -> None:
        """Start the leader, then each follower; stop at the first failure."""

        try:
            await self.leader.start()
        except Exception as exc:
            raise AgentStartError(tier="leader", agent_name=self.leader.name, underlying=exc) from exc

        for index, follower in enumerate(self.followers):
            try:
                await follower.start()
            except Exception as exc:
                raise AgentStartError(
                    tier=f"follower[{index}]", agent_name=follower.name, underlying=exc
                ) from exc

    async def stop(self) -> None:
        """Stop every agent in the chain, continuing past individual failures."""

        for agent in [self.leader, *self.followers]:
            try:
                await agent.stop()
            except Exception as exc:
                log_error(f"[Keeper] Stopping agent {agent.name} failed: {exc}")

    async def gen_actions(self, session: Session, messages: Sequence[Message]) -> Decision:
        """Return the first Decision from leader, then followers in order.

        Raises:
            Exception: the leader's original exception when every tier fails
        """

        try:
            return await self.leader.gen_actions(session, messages)
        except Exception as exc:
            leader_error = exc
            log_error(f"[Keeper] Leader {self.leader.name} gen actions error: {exc}")

        for follower in self.followers:
            log_agent(f"[Keeper] Trying follower {follower.name} ...")
            try:
                decision = await follower.gen_actions(session, messages)
            except Exception as exc:
                log_error(f"[Keeper] Follower {follower.name} gen actions error: {exc}")
                continue
            log_success(f"[Keeper] Follower {follower.name} produced a decision")
            return decision

        if self.followers:
            log_warning(f"[Keeper] All {len(self.followers) + 1} agents failed")
        else:
            log_info("[Keeper] No followers configured")
        raise leader_error


def resolve_agent(config: KeeperConfig, agents: Mapping[str, Agent]) -> Agent:
    """The agent to drive decisions: a keeper when enabled, else the leader alone."""

    if config.enabled:
        return AgentKeeper.from_config(config, agents)
    if config.leader not in agents:
        raise AgentNotFoundError(config.leader, list(agents))
    return agents[config.leader]
