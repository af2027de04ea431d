"""
Add celery-beat schedules for retry queue maintenance.

Creates periodic tasks for:
- requeue_retry_jobs: every 5 minutes, re-dispatch pending/failed jobs
- reset_stuck_retry_jobs: every 15 minutes, reset jobs stuck in processing
"""

from django.db import migrations

PERIODIC_TASKS = [
    {
        "name": "Requeue Ticketing Retry Jobs",
        "task": "ticketing.tasks.requeue_retry_jobs",
        "every": 5,
        "description": (
            "Re-dispatches pending and failed retry jobs whose broker "
            "message was lost."
        ),
    },
    {
        "name": "Reset Stuck Ticketing Retry Jobs",
        "task": "ticketing.tasks.reset_stuck_retry_jobs",
        "every": 15,
        "description": (
            "Moves retry jobs stuck in processing after a worker crash "
            "back to failed, or dead-letters them when out of attempts."
        ),
    },
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for retry queue maintenance."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for task_def in PERIODIC_TASKS:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=task_def["every"],
            period="minutes",
        )
        PeriodicTask.objects.get_or_create(
            name=task_def["name"],
            defaults={
                "task": task_def["task"],
                "interval": schedule,
                "enabled": True,
                "description": task_def["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[task_def["name"] for task_def in PERIODIC_TASKS],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("ticketing", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
