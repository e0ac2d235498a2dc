#!/usr/bin/env python3
"""Discord bot running Death Roll tournament signups and brackets."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Final

import discord
from discord import app_commands
from discord.ext import tasks

from deathroll_bot import (
    Actor,
    ChallongeClient,
    GuildStore,
    PersistenceError,
    TournamentOrchestrator,
    TournamentStatus,
    build_backend,
    resolve_legacy_guild_id,
)
from deathroll_bot.config import BotConfig
from deathroll_bot.errors import DeathRollError
from deathroll_bot.orchestrator import GuildOverview, LiveStatus
from deathroll_bot.selection import SelectionCache

log: Final = logging.getLogger("deathroll-bot")


def actor_from_interaction(interaction: discord.Interaction) -> Actor:
    member = interaction.user
    roles = getattr(member, "roles", None) or []
    perms = getattr(member, "guild_permissions", None)
    display_name = getattr(member, "display_name", None) or getattr(member, "name", "")
    return Actor.build(
        member.id,
        display_name,
        [role.id for role in roles if getattr(role, "id", None) is not None],
        administrator=bool(getattr(perms, "administrator", False)),
    )


def describe_overview(overview: GuildOverview, live: LiveStatus | None = None) -> str:
    if overview.status is TournamentStatus.NONE:
        return (
            "Death Roll signups are not open. "
            "An admin must create a tournament to begin."
        )
    if overview.status is TournamentStatus.SCHEDULED:
        return (
            f"**{overview.name}**\nScheduled: {overview.time}\n"
            f"Current signups: **{overview.player_count}**"
        )
    if not overview.challonge_url:
        return f"**{overview.name}**\nTournament in progress..."
    lines = [f"**{overview.name}**", "Tournament is live!", overview.challonge_url]
    match = live.current_match if live is not None else None
    if match is not None:
        round_text = f" (Round {match.round})" if match.round is not None else ""
        lines.append(
            f"**Current Match:** {match.player1} vs {match.player2}{round_text}"
        )
    elif live is not None:
        lines.append("All matches complete!")
    return "\n".join(lines)


def parse_indexes(raw: str) -> list[int]:
    """Turn ``"1, 3 4"`` into zero-based indexes."""
    indexes: list[int] = []
    for part in raw.replace(",", " ").split():
        try:
            value = int(part)
        except ValueError:
            continue
        if value > 0:
            indexes.append(value - 1)
    return indexes


class DeathRollRuntime:
    def __init__(self, config: BotConfig) -> None:
        intents = discord.Intents.default()
        intents.guilds = True

        self.config = config
        self.bot = discord.Client(intents=intents)
        self.tree = app_commands.CommandTree(self.bot)
        backend = build_backend(
            db_path=config.db_path,
            table_name=config.table_name,
            region=config.aws_region,
        )
        self.store = GuildStore.open(
            backend,
            legacy_guild_id=resolve_legacy_guild_id(
                config.guild_id, config.allowed_guild_ids
            ),
        )
        self.provider = ChallongeClient(
            config.challonge_api_key, api_base=config.challonge_api_base
        )
        self.orchestrator = TournamentOrchestrator(
            self.store,
            self.provider,
            selection_cache=SelectionCache(ttl_seconds=config.selection_ttl_seconds),
            default_owner_role_id=config.owner_role_id,
            default_staff_role_id=config.staff_role_id,
        )
        self.refresh_loop = tasks.loop(seconds=config.refresh_interval_seconds)(
            self.refresh_tick
        )
        self._register_commands()
        self.bot.event(self.on_ready)

    # ----- Signup message -----
    async def publish(self, live: LiveStatus) -> None:
        overview = live.overview
        if not overview.signup_channel_id or not overview.signup_message_id:
            return
        channel = self.bot.get_channel(int(overview.signup_channel_id))
        if channel is None:
            channel = await self.bot.fetch_channel(int(overview.signup_channel_id))
        if not isinstance(channel, discord.abc.Messageable):
            log.warning("Signup channel %s is not messageable", overview.signup_channel_id)
            return
        message = await channel.fetch_message(int(overview.signup_message_id))
        await message.edit(content=describe_overview(overview, live))

    async def refresh_guild(self, guild_id: int | str | None) -> None:
        try:
            await self.publish(await self.orchestrator.live_status(guild_id))
        except discord.NotFound:
            log.warning("Signup message for guild %s no longer exists", guild_id)
        except discord.HTTPException as exc:
            log.warning("Could not refresh signup message for %s: %s", guild_id, exc)

    async def refresh_tick(self) -> None:
        await self.orchestrator.refresh_live_guilds(self.publish)

    async def post_signup_message(self, guild_id: str, channel_id: int) -> None:
        channel = self.bot.get_channel(channel_id) or await self.bot.fetch_channel(
            channel_id
        )
        if not isinstance(channel, discord.abc.Messageable):
            log.warning("Configured channel %s is not messageable", channel_id)
            return
        overview = self.orchestrator.overview(guild_id)
        if overview.signup_message_id and overview.signup_channel_id:
            try:
                old_channel = await self.bot.fetch_channel(int(overview.signup_channel_id))
                if isinstance(old_channel, discord.abc.Messageable):
                    old = await old_channel.fetch_message(int(overview.signup_message_id))
                    await old.delete()
            except discord.HTTPException as exc:
                log.info("Previous signup message could not be removed: %s", exc)
        live = await self.orchestrator.live_status(guild_id)
        message = await channel.send(describe_overview(overview, live))
        self.orchestrator.record_signup_message(guild_id, channel_id, message.id)

    async def on_ready(self) -> None:  # pragma: no cover - Discord lifecycle wiring
        log.info("Logged in as %s", self.bot.user)
        if self.config.sync_commands:
            try:
                if self.config.guild_id:
                    guild = discord.Object(id=int(self.config.guild_id))
                    self.tree.copy_global_to(guild=guild)
                    await self.tree.sync(guild=guild)
                else:
                    await self.tree.sync()
            except discord.HTTPException:
                log.exception("Failed to sync application commands")
        if self.config.channel_id is not None:
            target_guild = resolve_legacy_guild_id(
                self.config.guild_id, self.config.allowed_guild_ids
            )
            try:
                await self.post_signup_message(target_guild, self.config.channel_id)
                log.info("Posted signup message based on tournament status")
            except (discord.HTTPException, PersistenceError):
                log.exception("Failed to post signup message")
        if not self.refresh_loop.is_running():
            self.refresh_loop.start()

    # ----- Commands -----
    async def _run(
        self,
        interaction: discord.Interaction,
        operation: Callable[[str, Actor], Awaitable[str]],
        *,
        refresh: bool = True,
    ) -> None:
        guild_id = str(interaction.guild_id) if interaction.guild_id else None
        actor = actor_from_interaction(interaction)
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            message = await operation(guild_id, actor)
        except PersistenceError:
            message = "Change applied but could not be saved. Please tell an admin."
        except DeathRollError as exc:
            message = str(exc)
        except Exception:  # pylint: disable=broad-except
            log.exception("Interaction error")
            message = "Something went wrong handling that interaction."
            refresh = False
        await interaction.followup.send(message, ephemeral=True)
        if refresh:
            await self.refresh_guild(guild_id)

    def _register_commands(self) -> None:  # pragma: no cover - Discord wiring
        orch = self.orchestrator
        run = self._run
        player = app_commands.Group(name="drt", description="Death Roll signups")
        admin = app_commands.Group(
            name="drtadmin", description="Death Roll admin controls"
        )

        @player.command(name="signup", description="Sign yourself up")
        async def signup(interaction: discord.Interaction) -> None:
            async def op(gid, actor):
                return f"Signed up: {await orch.sign_up(gid, actor)}"

            await run(interaction, op)

        @player.command(name="friends", description="Sign up to 5 friends")
        @app_commands.describe(names="Comma or newline separated names")
        async def friends(interaction: discord.Interaction, names: str) -> None:
            async def op(gid, actor):
                result = await orch.sign_up_friends(gid, actor, names)
                return f"Friends signed up: {', '.join(result.added)}"

            await run(interaction, op)

        @player.command(name="withdraw", description="Withdraw one of your signups")
        async def withdraw(interaction: discord.Interaction, name: str) -> None:
            async def op(gid, actor):
                removed = await orch.withdraw(gid, actor, [name])
                return f"Removed: {', '.join(removed)}" if removed else "Nothing removed."

            await run(interaction, op)

        @player.command(name="withdrawall", description="Withdraw all your signups")
        async def withdraw_all(interaction: discord.Interaction) -> None:
            async def op(gid, actor):
                await orch.withdraw_all(gid, actor)
                return "All your signups have been withdrawn."

            await run(interaction, op)

        @player.command(name="nick", description="Set your tournament nickname")
        async def nick(interaction: discord.Interaction, nickname: str) -> None:
            async def op(gid, actor):
                return f"Nickname set to: {await orch.set_nickname(gid, actor, nickname)}"

            await run(interaction, op)

        @player.command(name="players", description="List signed up players")
        async def players(interaction: discord.Interaction) -> None:
            async def op(gid, _actor):
                names = orch.list_players(gid)
                if not names:
                    return "No signups yet."
                lines = "\n".join(f"{i}. {n}" for i, n in enumerate(names, start=1))
                return f"**Signups ({len(names)})**\n{lines}"

            await run(interaction, op, refresh=False)

        @admin.command(name="schedule", description="Schedule a new tournament")
        @app_commands.describe(date="MM-DD-YY", time="HH:MM", meridiem="AM or PM")
        async def schedule(
            interaction: discord.Interaction,
            name: str,
            date: str,
            time: str,
            meridiem: str,
        ) -> None:
            async def op(gid, actor):
                result = await orch.schedule_tournament(
                    gid, actor, name=name, date=date, time=time, meridiem=meridiem
                )
                return (
                    f"Tournament **{result.name}** scheduled for {result.display} "
                    f"(<t:{result.timestamp}:f>)"
                )

            await run(interaction, op)

        @admin.command(name="createbracket", description="Push signups to Challonge")
        async def create_bracket(interaction: discord.Interaction) -> None:
            async def op(gid, actor):
                created = await orch.create_bracket(gid, actor)
                return (
                    f"Bracket created on Challonge for **{created.name}** with "
                    f"{created.player_count} players.\n{created.url or ''}"
                )

            await run(interaction, op)

        @admin.command(name="start", description="Start the Challonge bracket")
        async def start(interaction: discord.Interaction) -> None:
            async def op(gid, actor):
                await orch.start_bracket(gid, actor)
                return "Tournament started on Challonge!"

            await run(interaction, op)

        @admin.command(name="end", description="Finalize and clear the bracket")
        async def end(interaction: discord.Interaction) -> None:
            async def op(gid, actor):
                result = await orch.end_bracket(gid, actor)
                if result.fallback:
                    return (
                        f"Could not finalize on Challonge ({result.reason}). "
                        "Cleared saved bracket locally so you can create a new one."
                    )
                if result.already_complete:
                    return "Bracket is already complete. Cleared saved bracket."
                return "Bracket finalized on Challonge and cleared locally."

            await run(interaction, op)

        @admin.command(name="kill", description="Hard reset the tournament")
        async def kill(interaction: discord.Interaction) -> None:
            async def op(gid, actor):
                removed = await orch.kill_tournament(gid, actor)
                return f"Tournament reset. {removed} signup(s) cleared."

            await run(interaction, op)

        @admin.command(name="timezone", description="Set the default time zone")
        async def timezone(interaction: discord.Interaction, zone: str) -> None:
            async def op(gid, actor):
                tz = await orch.set_default_timezone(gid, actor, zone)
                return f"Default tournament time zone set to **{tz}**"

            await run(interaction, op, refresh=False)

        @admin.command(name="ownerrole", description="Set the owner role")
        async def owner_role(interaction: discord.Interaction, role: discord.Role) -> None:
            async def op(gid, actor):
                await orch.set_owner_role(gid, actor, role.id)
                return f"Owner role set to {role.name}."

            await run(interaction, op, refresh=False)

        @admin.command(name="staffrole", description="Set the staff role")
        async def staff_role(interaction: discord.Interaction, role: discord.Role) -> None:
            async def op(gid, actor):
                await orch.set_staff_role(gid, actor, role.id)
                return f"Staff role set to {role.name}."

            await run(interaction, op, refresh=False)

        @admin.command(name="channel", description="Post the signup message here")
        async def channel(interaction: discord.Interaction) -> None:
            async def op(gid, actor):
                await orch.set_signup_channel(gid, actor, interaction.channel_id)
                await self.post_signup_message(gid, int(interaction.channel_id))
                return "Signup message posted."

            await run(interaction, op, refresh=False)

        @admin.command(name="removals", description="List signups for removal")
        async def removals(interaction: discord.Interaction, page: int = 1) -> None:
            async def op(gid, actor):
                listing = await orch.open_removal_page(gid, actor, page - 1)
                lines = "\n".join(
                    f"{option.index + 1}. {option.label}" for option in listing.options
                )
                return (
                    f"Page {listing.page + 1}/{listing.total_pages}\n{lines}\n"
                    f"Use /drtadmin remove page:{listing.page + 1} to remove."
                )

            await run(interaction, op, refresh=False)

        @admin.command(name="remove", description="Remove listed signups")
        @app_commands.describe(entries="Numbers from the list, e.g. 1, 3")
        async def remove(
            interaction: discord.Interaction, entries: str, page: int = 1
        ) -> None:
            async def op(gid, actor):
                result = await orch.remove_selected(
                    gid, actor, page - 1, parse_indexes(entries)
                )
                text = f"Removed: {', '.join(result.removed) or 'nobody'}"
                if result.missing:
                    text += f"\nAlready gone: {', '.join(result.missing)}"
                return text

            await run(interaction, op)

        self.tree.add_command(player)
        self.tree.add_command(admin)

    async def run(self) -> None:  # pragma: no cover - network lifecycle
        try:
            async with self.bot:
                await self.bot.start(self.config.discord_token)
        finally:
            self.provider.close()

    @classmethod
    def create(cls) -> DeathRollRuntime:
        return cls(BotConfig.load())


async def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    runtime = DeathRollRuntime.create()
    await runtime.run()


def cli() -> None:  # pragma: no cover - script entry
    asyncio.run(main())


if __name__ == "__main__":  # pragma: no cover - script entry
    cli()
