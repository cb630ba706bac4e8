"""Tests for job domain events."""

from dataclasses import FrozenInstanceError

import pytest

from core.events import (
    JobCreated, JobDelivered, JobEvent, JobOutsourced, JobReceivedBack, JobReturned, JobStatusChanged,
    RepairEvent,
)


class TestEventCreation:

    def test_create_carries_job(self, make_job):
        job = make_job()

        event = JobCreated.create(job=job)

        assert event.job is job
        assert event.event_id
        assert event.occurred_at is not None

    def test_each_event_gets_unique_id(self, make_job):
        job = make_job()

        assert JobDelivered.create(job=job).event_id != JobDelivered.create(job=job).event_id

    def test_status_changed_records_previous(self, make_job):
        event = JobStatusChanged.create(job=make_job(), previous_status="received")

        assert event.previous_status == "received"

    def test_events_are_frozen(self, make_job):
        event = JobReturned.create(job=make_job())

        with pytest.raises(FrozenInstanceError):
            event.job = None

    @pytest.mark.parametrize("event_cls", [
        JobCreated, JobStatusChanged, JobOutsourced, JobReceivedBack, JobDelivered, JobReturned,
    ])
    def test_hierarchy(self, event_cls):
        assert issubclass(event_cls, JobEvent)
        assert issubclass(event_cls, RepairEvent)
