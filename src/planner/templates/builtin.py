"""Predefined templates shipped with the application.

Addressed by slug; they are never stored in the templates table.
"""

from dataclasses import dataclass, field

from planner.schemas.template import (
    GoalTemplate,
    HabitTemplate,
    TaskTemplate,
    TemplateStructure,
)


@dataclass(frozen=True)
class BuiltinTemplate:
    """A read-only template definition."""

    slug: str
    name: str
    description: str
    type: str
    category: str
    structure: TemplateStructure
    tags: list[str] = field(default_factory=list)


BUILTIN_TEMPLATES: dict[str, BuiltinTemplate] = {
    t.slug: t
    for t in [
        BuiltinTemplate(
            slug="weekly-review",
            name="Weekly Review",
            description="Close out the week and plan the next one.",
            type="routine",
            category="productivity",
            tags=["review", "planning"],
            structure=TemplateStructure(entries=[
                TaskTemplate(title="Clear inbox to zero", priority="medium", estimated_duration=30, due_in_days=6),
                TaskTemplate(title="Review calendar for next week", estimated_duration=15, due_in_days=6, position=1),
                TaskTemplate(title="Pick top three priorities", priority="high", estimated_duration=15, due_in_days=6, position=2),
                HabitTemplate(name="Weekly review", frequency="weekly", scheduled_days=[5], duration=45),
            ]),
        ),
        BuiltinTemplate(
            slug="morning-routine",
            name="Morning Routine",
            description="A calm, repeatable start to the day.",
            type="routine",
            category="health",
            tags=["habits", "morning"],
            structure=TemplateStructure(entries=[
                HabitTemplate(name="Drink a glass of water", scheduled_time="07:00", icon="droplet"),
                HabitTemplate(name="Stretch", type="duration", duration=10, unit="minutes", scheduled_time="07:05"),
                HabitTemplate(name="Plan the day", duration=5, scheduled_time="07:20", scheduled_days=[1, 2, 3, 4, 5]),
            ]),
        ),
        BuiltinTemplate(
            slug="project-launch",
            name="Project Launch",
            description="Goal and task skeleton for shipping a project.",
            type="project",
            category="business",
            tags=["project", "launch"],
            structure=TemplateStructure(entries=[
                GoalTemplate(
                    title="Launch the project",
                    type="quarterly",
                    priority="high",
                    target_in_days=90,
                    milestones=["Scope agreed", "Beta released", "Public launch"],
                ),
                TaskTemplate(title="Write project brief", priority="high", due_in_days=7),
                TaskTemplate(title="Define success metrics", due_in_days=10, position=1),
                TaskTemplate(title="Schedule kickoff meeting", due_in_days=3, position=2),
                TaskTemplate(title="Plan launch announcement", priority="low", due_in_days=80, position=3),
            ]),
        ),
    ]
}
