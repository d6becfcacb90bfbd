# ABOUTME: Provides a CLI to inspect the primitive catalog, generate stage patterns, and simulate play.
# ABOUTME: Wires generator, collector, event channel, and storage together from the engine YAML config.

import json
import logging
import random
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from src.common.config import EngineConfig, load_engine_config
from src.common.events import (
    PATTERN_APPLIED,
    PLAYER_HINT_USED,
    PLAYER_MOVE,
    SESSION_COMPLETED,
    EventChannel,
)
from src.common.schemas import PlayerProfile
from src.learning.collector import LearningDataCollector
from src.learning.export import export_learning_report
from src.learning.records import PerformanceMetrics
from src.learning.storage import build_store
from src.pattern_gen.catalog import PrimitiveCatalog, default_catalog, load_catalog
from src.pattern_gen.generator import PatternGenerator

console = Console()
app = typer.Typer(help="Adaptive procedural difficulty engine: catalog, generation, and play simulation.")

DEFAULT_CONFIG = Path("configs/engine.yaml")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(config_path: Path) -> EngineConfig:
    if config_path.exists():
        return load_engine_config(config_path)
    console.print(f"[yellow]Config {config_path} not found; using built-in defaults.[/yellow]")
    return EngineConfig()


def _load_catalog(config: EngineConfig) -> PrimitiveCatalog:
    if config.catalog_path is not None and config.catalog_path.exists():
        return load_catalog(config.catalog_path)
    return default_catalog()


class _SimulatedClock:
    """Monotonic fake clock so simulated sessions get distinct, ordered timestamps."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@app.command()
def catalog(
    config_path: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Engine YAML config."),
) -> None:
    """
    List every registered primitive with its band and combination rules.
    """
    primitives = _load_catalog(_load_config(config_path))

    table = Table(title=f"Primitive Catalog ({len(primitives)} primitives)")
    table.add_column("ID", style="cyan")
    table.add_column("Tags")
    table.add_column("Band")
    table.add_column("Difficulty", justify="right")
    table.add_column("Learnability", justify="right")
    table.add_column("Novelty", justify="right")
    table.add_column("Rules")
    for primitive in primitives:
        rules = primitive.spawn_rules
        notes = []
        if rules.forbidden_with_tags:
            notes.append("forbids " + "/".join(t.value for t in rules.forbidden_with_tags))
        if rules.prerequisite_patterns:
            notes.append("needs " + "/".join(rules.prerequisite_patterns))
        if rules.max_simultaneous is not None:
            notes.append(f"max {rules.max_simultaneous}")
        table.add_row(
            primitive.id,
            ", ".join(t.value for t in primitive.tags),
            primitive.band.value,
            f"{primitive.base_difficulty:.1f}",
            f"{primitive.learnability:.2f}",
            f"{primitive.novelty:.2f}",
            "; ".join(notes) or "-",
        )
    console.print(table)


@app.command()
def generate(
    stage: int = typer.Option(..., "--stage", help="Stage number (>= 1)."),
    player_id: str = typer.Option("demo-player", "--player-id", help="Player identifier used for seeding."),
    seed: Optional[str] = typer.Option(None, "--seed", help="Explicit seed for reproducible output."),
    profile_path: Optional[Path] = typer.Option(None, "--profile", help="JSON PlayerProfile; omit for a new player."),
    config_path: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Engine YAML config."),
    as_json: bool = typer.Option(False, "--json", help="Print the StagePattern as JSON."),
    verbose: bool = typer.Option(False, "--verbose", help="Show generator debug logs."),
) -> None:
    """
    Generate one personalized stage pattern.
    """
    _configure_logging(verbose)
    config = _load_config(config_path)
    generator = PatternGenerator(_load_catalog(config), config.generation)

    if profile_path is not None:
        profile = PlayerProfile.from_dict(json.loads(profile_path.read_text()))
    else:
        profile = PlayerProfile(player_id=player_id)

    pattern = generator.generate_stage_pattern(stage, profile, seed=seed)
    if as_json:
        console.print_json(json.dumps(pattern.to_dict()))
        return

    requirement = generator.stage_requirement(stage, profile, seed=pattern.seed)
    console.rule(f"[bold blue]{pattern.id}[/bold blue]")
    console.print(f"[bold]Band:[/] {requirement.band.value}  [bold]Target win rate:[/] {requirement.target_win_rate:.2f}")
    console.print(
        f"[bold]Difficulty:[/] {pattern.total_difficulty:.2f}  "
        f"[bold]Learnability:[/] {pattern.total_learnability:.2f}  "
        f"[bold]Complexity:[/] {pattern.combination_complexity:.2f}"
    )

    table = Table(title="Primitives")
    table.add_column("ID", style="cyan")
    table.add_column("Difficulty", justify="right")
    table.add_column("Learnability", justify="right")
    table.add_column("Support")
    support = {s.primitive_id: s for s in pattern.support}
    for primitive in pattern.primitives:
        decision = support.get(primitive.id)
        aids = []
        if decision is not None:
            aids = [name for name, on in (
                ("telegraph", decision.visual_telegraph),
                ("hint", decision.hint),
                ("practice", decision.practice_mode),
            ) if on]
        table.add_row(
            primitive.id,
            f"{primitive.base_difficulty:.1f}",
            f"{primitive.learnability:.2f}",
            ", ".join(aids) or "-",
        )
    console.print(table)


@app.command()
def simulate(
    player_id: str = typer.Option("sim-player", "--player-id", help="Simulated player identifier."),
    sessions: int = typer.Option(6, "--sessions", min=1, help="Number of sessions to play."),
    stages_per_session: int = typer.Option(4, "--stages", min=1, help="Stages attempted per session."),
    skill: float = typer.Option(0.6, "--skill", min=0.0, max=1.0, help="Simulated player skill in [0, 1]."),
    rng_seed: int = typer.Option(7, "--rng-seed", help="Seed for simulated outcomes."),
    config_path: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Engine YAML config."),
    store_path: Optional[Path] = typer.Option(None, "--store", help="JSON file for learning data."),
    report_dir: Optional[Path] = typer.Option(None, "--report-dir", help="Write parquet analytics here."),
    verbose: bool = typer.Option(False, "--verbose", help="Show engine debug logs."),
) -> None:
    """
    Play simulated sessions through the full generate -> record -> profile loop.
    """
    _configure_logging(verbose)
    config = _load_config(config_path)
    rng = random.Random(rng_seed)
    clock = _SimulatedClock()

    channel = EventChannel()
    generator = PatternGenerator(_load_catalog(config), config.generation, channel)
    collector = LearningDataCollector(
        config.collector,
        channel=channel,
        store=build_store(store_path or config.storage.path, config.storage.retries),
        clock=clock,
        generation_config=config.generation,
    )
    collector.initialize()
    collector.bind_game_events()

    insights_seen = []
    channel.subscribe(SESSION_COMPLETED, lambda payload: insights_seen.extend(payload["insights"]))

    table = Table(title=f"Simulation for {player_id}")
    table.add_column("Session", justify="right")
    table.add_column("Stages")
    table.add_column("Success", justify="right")
    table.add_column("Engagement", justify="right")
    table.add_column("Adaptability", justify="right")
    table.add_column("Ceiling", justify="right")

    stage = 1
    for index in range(sessions):
        collector.start_session(player_id)
        played = []
        for _ in range(stages_per_session):
            profile = collector.build_player_profile(player_id)
            pattern = generator.generate_stage_pattern(stage, profile, seed=f"{player_id}-{stage}-{index}")
            channel.publish(PATTERN_APPLIED, {"stage": stage, "pattern": pattern})

            win_chance = min(max(0.5 + skill - 0.05 * pattern.total_difficulty, 0.05), 0.95)
            success = rng.random() < win_chance
            solve_time = (30.0 + 8.0 * pattern.total_difficulty) * rng.uniform(0.7, 1.3)
            hints = 1 if rng.random() < 0.3 else 0
            mistakes = rng.randint(0, 2)

            for _ in range(rng.randint(3, 6)):
                channel.publish(PLAYER_MOVE, {"stage": stage, "game_context": {"stage": stage}})
            if hints:
                channel.publish(PLAYER_HINT_USED, {"stage": stage, "game_context": {"stage": stage}})

            clock.advance(solve_time)
            collector.record_pattern_performance(
                collector.applied_pattern,
                success,
                PerformanceMetrics(solve_time, attempts_required=1, hints_used=hints, mistakes_count=mistakes),
            )
            collector.record_stage_completion(stage, success, score=1000 * pattern.total_difficulty if success else 0, play_time=solve_time)
            played.append(stage)
            if success:
                stage += 1

        session = collector.end_session()
        learning = collector.get_learning_profile(player_id)
        data = learning.pattern_data
        table.add_row(
            str(index + 1),
            ",".join(str(s) for s in played),
            f"{session.success_rate:.2f}",
            f"{session.metrics.engagement_level:.2f}",
            f"{data.adaptability_score:.2f}",
            f"{data.max_handled_complexity:.2f}",
        )
        clock.advance(600)

    console.print(table)

    if insights_seen:
        console.rule("[bold]Insights[/bold]")
        for insight in insights_seen:
            console.print(f"[cyan]{insight.insight_type.value}[/cyan] ({insight.confidence:.1f}) {insight.description}")
            console.print(f"  → {insight.recommended_action}")
    else:
        console.print("[dim]No insights yet; more sessions are needed.[/dim]")

    if report_dir is not None:
        paths = export_learning_report(collector.get_session_history(player_id, limit=None), report_dir)
        for name, path in paths.items():
            console.print(f"[green]✅ {name} -> {path}[/green]")


if __name__ == "__main__":
    app()
