# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the Dramatiq broker and the periodic scheduler."""

from unittest.mock import MagicMock, patch

import pytest
from dramatiq.brokers.stub import StubBroker
from dramatiq.errors import QueueNotFound

from src.infrastructure.background.broker import BrokerManager
from src.infrastructure.background.scheduler import DramatiqScheduler


class TestBrokerManager:
    @patch("src.infrastructure.background.broker.dramatiq.set_broker")
    def test_stub_broker_in_test_mode(self, mock_set_broker) -> None:
        manager = BrokerManager()

        broker = manager.setup()

        assert isinstance(broker, StubBroker)
        assert manager.is_initialized is True
        assert manager.setup() is broker
        assert manager.get_queue_stats() == {"broker_type": "stub", "status": "healthy"}
        mock_set_broker.assert_called_once_with(broker)

        manager.shutdown()
        assert manager.is_initialized is False

    def test_broker_before_setup(self) -> None:
        manager = BrokerManager()

        with pytest.raises(RuntimeError):
            _ = manager.broker
        assert manager.get_queue_stats() == {"status": "not_initialized"}


class TestDramatiqScheduler:
    @pytest.mark.asyncio
    async def test_execute_sends_actor(self) -> None:
        scheduler = DramatiqScheduler()
        task = scheduler.add_interval_task(
            name="Expire Stale Generations",
            actor_name="expire_stale_generations",
            minutes=5,
        )
        actor = MagicMock()

        with patch.object(scheduler, "_get_actor", return_value=actor):
            await scheduler._execute_task(task.id)

        actor.send.assert_called_once_with()
        assert task.run_count == 1
        assert task.last_run is not None

    @pytest.mark.asyncio
    async def test_missing_actor_counts_error(self) -> None:
        scheduler = DramatiqScheduler()
        task = scheduler.add_interval_task(name="Nothing", actor_name="no_such_actor", minutes=1)

        with patch.object(scheduler, "_get_actor", return_value=None):
            await scheduler._execute_task(task.id)

        assert task.error_count == 1
        assert task.run_count == 0

    @pytest.mark.asyncio
    async def test_send_failure_counts_error(self) -> None:
        scheduler = DramatiqScheduler()
        task = scheduler.add_interval_task(name="Sweep", actor_name="sweep", minutes=1)
        actor = MagicMock()
        actor.send.side_effect = QueueNotFound("maintenance")

        with patch.object(scheduler, "_get_actor", return_value=actor):
            await scheduler._execute_task(task.id)

        assert scheduler.get_stats()["total_errors"] == 1

    @pytest.mark.asyncio
    async def test_start_and_stop(self) -> None:
        scheduler = DramatiqScheduler()

        await scheduler.start()
        assert scheduler.is_running is True

        await scheduler.stop()
        assert scheduler.is_running is False
