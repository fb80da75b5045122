"""
Typer CLI for the fluency calibration engine.

Commands:
    fluency db init                 - Initialize database tables
    fluency load objects.json       - Import a goal's objects and collocations
    fluency contexts                - List standard usage contexts
    fluency templates               - List task templates
    fluency compose TEMPLATE_ID     - Compose a task from a JSON candidate pool
    fluency score                   - Score a response against a JSON task spec
    fluency task next               - Generate the next task for a goal
    fluency task status             - Show pipeline status for a goal
    fluency usage record            - Record a usage event
    fluency usage generalize        - Estimate generalization for an object

Usage:
    fluency --help
    fluency compose sentence-writing-multi --pool pool.json --budget 1.0
    fluency score --spec spec.json --response "take medication"
    fluency usage record obj-1 academic-written-formal 0.8 --domain academic
"""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import typer
from loguru import logger
from pydantic import BaseModel, Field, ValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from fluency import __version__
from fluency.calibration.engine import CalibrationEngine, create_multi_object_task_spec
from fluency.calibration.scoring import MultiObjectScoringConfig
from fluency.composition.composer import CompositionOptimizationConfig, TaskComposer
from fluency.composition.economic_value import build_candidate_pool
from fluency.composition.templates import TASK_TEMPLATES, get_template
from fluency.constraints.graph import build_constraint_graph
from fluency.core.components import ComponentCode, TaskType
from fluency.core.exceptions import FluencyError
from fluency.core.models import Collocation, LanguageObject, MasteryRecord, UserThetaProfile
from fluency.usage.contexts import STANDARD_CONTEXTS, contexts_for_domain

app = typer.Typer(
    help="fluency-engine CLI: task composition, response calibration and usage tracking",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Input file formats
# ========================================


class ObjectIn(BaseModel):
    id: str
    kind: str = "LEX"
    content: str
    irt_difficulty: float = 0.0
    irt_discrimination: float = 1.0
    priority: float = 0.5
    frequency: float = 0.5
    relational_density: float = 0.5
    contextual_contribution: float = 0.5

    def to_domain(self) -> LanguageObject:
        return LanguageObject(**self.model_dump(include=set(ObjectIn.model_fields)))


class MasteryIn(BaseModel):
    stage: int = 0
    stability: float = 0.0
    difficulty: float = 5.0
    exposure_count: int = 0
    cue_free_accuracy: float = 0.0
    cue_assisted_accuracy: float = 0.0
    last_review: datetime | None = None


class PoolFile(BaseModel):
    """Objects, mastery by object id and [a, b, npmi, pmi] collocation rows."""

    objects: list[ObjectIn]
    masteries: dict[str, MasteryIn] = Field(default_factory=dict)
    collocations: list[tuple[str, str, float | None, float | None]] = Field(default_factory=list)


class TargetIn(ObjectIn):
    is_primary: bool = False


class ProfileIn(BaseModel):
    global_theta: float = 0.0
    phonology: float = 0.0
    morphology: float = 0.0
    lexical: float = 0.0
    syntactic: float = 0.0
    pragmatic: float = 0.0


class SpecFile(BaseModel):
    task_id: str = "cli-task"
    task_type: TaskType
    expected_answer: str
    targets: list[TargetIn]
    profile: ProfileIn = Field(default_factory=ProfileIn)


def _read_model(path: Path, model: type[BaseModel]):
    try:
        return model.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.error(f"Could not read {path}: {e}")
        raise typer.Exit(code=1)


def _pipeline():
    from fluency.db.repositories import ObjectRepository, UsageSpaceRepository
    from fluency.pipeline.integrated import TaskPipeline
    from fluency.usage.tracker import UsageSpaceTracker

    settings = get_settings()
    tracker = UsageSpaceTracker(
        UsageSpaceRepository(),
        success_threshold=settings.usage_success_threshold,
        default_domain=settings.usage_default_goal_domain,
    )
    return TaskPipeline(
        ObjectRepository(),
        tracker,
        TaskComposer(CompositionOptimizationConfig.from_settings(settings)),
        CalibrationEngine(MultiObjectScoringConfig.from_settings(settings)),
    )


# ========================================
# DB Commands
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from fluency.db.database import init_db

    logger.info("Initializing database tables...")
    init_db()
    rprint("[green]✓[/green] Database initialized!")


@app.command("load")
def load_objects(
    path: Path = typer.Argument(..., help="JSON pool file (objects, collocations)"),
    goal: str | None = typer.Option(None, "--goal", "-g", help="Goal the objects belong to"),
) -> None:
    """Import language objects and collocations into the database."""
    from fluency.db.repositories import ObjectRepository

    pool = _read_model(path, PoolFile)
    repo = ObjectRepository()
    count = repo.add_objects([o.to_domain() for o in pool.objects], goal_id=goal)
    links = repo.add_collocations(Collocation(*row) for row in pool.collocations)
    rprint(f"[green]✓[/green] Loaded {count} objects and {links} collocations")


# ========================================
# Reference Data
# ========================================


@app.command("contexts")
def list_contexts(
    domain: str | None = typer.Option(None, "--domain", "-d", help="Only contexts in this domain"),
) -> None:
    """List standard usage contexts."""
    contexts = contexts_for_domain(domain) if domain else STANDARD_CONTEXTS

    table = Table(title=f"Usage Contexts ({len(contexts)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Domain", style="green")
    table.add_column("Register")
    table.add_column("Modality", style="dim")

    for c in contexts:
        table.add_row(c.context_id, c.name, c.domain, c.register, c.modality)
    console.print(table)


@app.command("templates")
def list_templates() -> None:
    """List task templates."""
    table = Table(title=f"Task Templates ({len(TASK_TEMPLATES)})")
    table.add_column("ID", style="cyan")
    table.add_column("Task Type")
    table.add_column("Format", style="dim")
    table.add_column("Slots", justify="right")
    table.add_column("Interaction")

    for t in TASK_TEMPLATES:
        table.add_row(t.template_id, t.task_type.value, t.task_format, str(len(t.slots)), t.interaction_model.value)
    console.print(table)


# ========================================
# Composition & Scoring
# ========================================


@app.command("compose")
def compose(
    template_id: str = typer.Argument(..., help="Template to fill"),
    pool: Path = typer.Option(..., "--pool", "-p", help="JSON candidate pool"),
    budget: float | None = typer.Option(None, "--budget", "-b", help="Cognitive load budget override"),
) -> None:
    """Compose a task from a candidate pool file."""
    template = get_template(template_id)
    if template is None:
        rprint(f"[red]✗[/red] Unknown template: {template_id}")
        raise typer.Exit(code=1)

    data = _read_model(pool, PoolFile)
    objects = [o.to_domain() for o in data.objects]
    masteries = {k: MasteryRecord(**v.model_dump()) for k, v in data.masteries.items()}
    collocations = [Collocation(*row) for row in data.collocations]

    candidates = build_candidate_pool(objects, masteries, collocations)
    composer = TaskComposer(CompositionOptimizationConfig.from_settings(), build_constraint_graph(collocations))
    result = composer.compose(template, candidates, cognitive_load_budget=budget)

    if not result.success or result.task is None:
        rprint(f"[red]✗[/red] Composition failed: {result.failure_reason}")
        raise typer.Exit(code=1)

    task = result.task
    rprint(f"[bold]{task.content}[/bold]")

    table = Table(title=f"{task.template_id} ({task.task_type.value})")
    table.add_column("Slot", style="cyan")
    table.add_column("Object")
    table.add_column("Role")
    table.add_column("Stage", justify="right")
    table.add_column("Value", justify="right", style="green")
    table.add_column("Cost", justify="right", style="yellow")

    for s in task.filled_slots:
        table.add_row(
            s.slot_id, s.content, s.role.value, str(s.mastery_stage), f"{s.effective_value:.3f}", f"{s.effective_cost:.3f}"
        )
    console.print(table)
    rprint(
        f"  value={result.total_value:.3f} cost={result.total_cost:.3f} "
        f"efficiency={result.efficiency:.3f} synergy={result.synergy_bonus:.3f}"
    )
    for violation in result.constraint_violations:
        rprint(f"[yellow]⚠[/yellow] {violation}")


@app.command("score")
def score(
    spec: Path = typer.Option(..., "--spec", "-s", help="JSON task spec"),
    response: str = typer.Option(..., "--response", "-r", help="Learner response"),
    cue_level: int = typer.Option(0, "--cue-level", help="0 for cue-free, >0 when cues were shown"),
) -> None:
    """Score a response and show ability contributions and mastery updates."""
    data = _read_model(spec, SpecFile)
    try:
        task_spec = create_multi_object_task_spec(
            data.task_id,
            [(t.to_domain(), t.is_primary) for t in data.targets],
            data.task_type,
            data.expected_answer,
        )
    except FluencyError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    engine = CalibrationEngine(MultiObjectScoringConfig.from_settings())
    outcome = engine.process_response(
        UserThetaProfile(**data.profile.model_dump()), task_spec, response, cue_level=cue_level
    )

    table = Table(title=f"Evaluation (composite {outcome.evaluation.composite_score:.2f})")
    table.add_column("Object", style="cyan")
    table.add_column("Component")
    table.add_column("Credit", justify="right")
    table.add_column("Δθ", justify="right", style="green")
    table.add_column("Stage", justify="right")

    for ev, contribution, update in zip(
        outcome.evaluation.component_evaluations, outcome.contributions, outcome.mastery_updates
    ):
        table.add_row(
            ev.object_id,
            ev.component.value,
            f"{ev.partial_credit:.2f}",
            f"{contribution.theta_delta:+.3f}",
            f"{update.previous_stage} → {update.new_stage}",
        )
    console.print(table)
    rprint(outcome.feedback)

    thetas = ", ".join(f"{k}={v:+.3f}" for k, v in outcome.profile.as_dict().items())
    rprint(f"  θ: {thetas}")


# ========================================
# Task Pipeline
# ========================================

task_app = typer.Typer(help="Integrated task pipeline")
app.add_typer(task_app, name="task")


@task_app.command("next")
def task_next(
    goal: str | None = typer.Option(None, "--goal", "-g", help="Goal id"),
    domain: str = typer.Option("general", "--domain", "-d", help="Goal domain"),
    context: str | None = typer.Option(None, "--context", "-c", help="Force a usage context"),
    no_fallback: bool = typer.Option(False, "--no-fallback", help="Fail instead of falling back"),
) -> None:
    """Generate the next task for a goal."""
    from fluency.pipeline.integrated import TaskRequest

    result = _pipeline().generate_task(
        TaskRequest(
            session_id="cli",
            goal_id=goal,
            domain=domain,
            target_context=context,
            allow_fallback=not no_fallback,
        )
    )
    if not result.success or result.task is None:
        rprint(f"[red]✗[/red] No task generated: {result.failure_reason}")
        raise typer.Exit(code=1)

    task = result.task
    marker = " [yellow](fallback)[/yellow]" if result.used_fallback else ""
    rprint(f"[bold]{task.prompt}[/bold]{marker}")
    rprint(f"  type={task.task_type.value} format={task.task_format} context={result.usage_context.context_id}")
    rprint(f"  objects={', '.join(task.object_ids)} difficulty={task.difficulty:.2f}")
    rprint(
        f"  [dim]{result.metadata.candidates_considered} candidates, "
        f"{result.metadata.constraints_evaluated} constraints, "
        f"{result.metadata.generation_time_ms:.1f} ms[/dim]"
    )


@task_app.command("status")
def task_status(
    goal: str | None = typer.Option(None, "--goal", "-g", help="Goal id"),
    domain: str = typer.Option("general", "--domain", "-d", help="Goal domain"),
) -> None:
    """Show candidate, template and constraint counts and usage readiness."""
    status = _pipeline().status(goal, domain)

    table = Table(title="Pipeline Status")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Candidates", str(status.candidate_count))
    table.add_row("Templates", str(status.template_count))
    table.add_row("Constraints", str(status.constraint_count))
    table.add_row("Usage readiness", f"{status.usage_readiness:.0%}")
    console.print(table)


# ========================================
# Usage Space
# ========================================

usage_app = typer.Typer(help="Usage-space tracking")
app.add_typer(usage_app, name="usage")


@usage_app.command("record")
def usage_record(
    object_id: str = typer.Argument(..., help="Object id"),
    context_id: str = typer.Argument(..., help="Usage context id"),
    score: float = typer.Argument(..., min=0.0, max=1.0, help="Score in [0, 1]"),
    component: ComponentCode = typer.Option(ComponentCode.LEX, "--component", help="Object component"),
    domain: str | None = typer.Option(None, "--domain", "-d", help="Goal domain for new usage spaces"),
) -> None:
    """Record a usage event and report any expansion."""
    from fluency.db.repositories import UsageSpaceRepository
    from fluency.usage.tracker import UsageEvent, UsageSpaceTracker

    settings = get_settings()
    tracker = UsageSpaceTracker(
        UsageSpaceRepository(),
        success_threshold=settings.usage_success_threshold,
        default_domain=settings.usage_default_goal_domain,
    )
    result = tracker.record_usage(
        UsageEvent(
            object_id=object_id,
            context_id=context_id,
            score=score,
            success=score >= settings.usage_success_threshold,
            component=component,
        ),
        domain,
    )

    if result.expansion is not None:
        rprint(
            f"[green]✓[/green] Expanded into {context_id}: "
            f"{result.expansion.previous_coverage:.0%} → {result.expansion.new_coverage:.0%}"
        )
    else:
        rprint(f"[green]✓[/green] Recorded (coverage {result.new_coverage:.0%})")


@usage_app.command("generalize")
def usage_generalize(
    object_id: str = typer.Argument(..., help="Object id"),
    component: ComponentCode = typer.Option(ComponentCode.LEX, "--component", help="Object component"),
    domain: str | None = typer.Option(None, "--domain", "-d", help="Goal domain"),
    configured_weights: bool = typer.Option(
        False,
        "--configured-weights",
        help="Rank next contexts with the configured sampling weights instead of the component's own",
    ),
) -> None:
    """Estimate how far an object's usage generalizes to its goal contexts."""
    from fluency.db.repositories import UsageSpaceRepository
    from fluency.generalization.estimator import GeneralizationEstimator
    from fluency.generalization.sampling import RepresentativeSamplingStrategy
    from fluency.usage.tracker import UsageSpaceTracker

    settings = get_settings()
    tracker = UsageSpaceTracker(UsageSpaceRepository(), default_domain=settings.usage_default_goal_domain)
    strategy = RepresentativeSamplingStrategy.from_settings(settings) if configured_weights else None
    estimate = GeneralizationEstimator(tracker, settings.usage_max_recommendations, strategy).estimate(
        object_id, component, domain
    )

    table = Table(title=f"Generalization: {object_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Direct coverage", f"{estimate.direct_coverage:.0%}")
    table.add_row("Estimated total", f"{estimate.estimated_total_coverage:.0%}")
    table.add_row("Goal-aligned", f"{estimate.goal_aligned_coverage:.0%}")
    table.add_row("Automation", f"{estimate.automation_level:.2f}")
    console.print(table)

    if estimate.recommended_next_contexts:
        rprint(f"  Next contexts: {', '.join(c.context_id for c in estimate.recommended_next_contexts)}")


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint(f"[bold]fluency-engine[/bold] v{__version__}")


def run() -> None:
    """Entry point for the CLI."""
    settings = get_settings()
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level, format="<level>{message}</level>")
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB", retention=5)

    app()


if __name__ == "__main__":
    run()
