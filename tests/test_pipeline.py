"""End-to-end scenarios for the reconciliation pipeline.

The real resolver, decision engine, detector and executor run against fake
host primitives; only the Windows queries and mutations are replaced.
Run with:  python -m pytest tests/  or  python -m unittest discover tests/
"""

import unittest
import unittest.mock as mock

from device_rename.collectors.base import CollectorResult
from device_rename.errors import SchedulerError
from device_rename.models.schema import ChassisType, OnPremisesJoin, ProvisioningPhase
from device_rename.reconcile.directory import DomainJoinDetector
from device_rename.reconcile.executor import RenameExecutor
from device_rename.reconcile.naming import HardwareIdentityResolver
from device_rename.reconcile.pipeline import ReconciliationPipeline
from device_rename.reconcile.types import (
    ApplyRename,
    Completed,
    CompletedDeferredExitForProvisioning,
    ExitCode,
    NoOpAlreadyCorrect,
    NoOpInvalidCandidate,
)

_NAMING = {"identity_source": "serial", "hardware_segment_length": 13, "chassis_prefix": {}}
_RESTART = {"delay_seconds": 600, "message": "Restarting in 10 minutes"}


class FakeDevice:
    """In-memory device whose pending name changes when renamed."""

    def __init__(self, name="DESKTOP-AB12CD", serial="PF3KX99 ", chassis=ChassisType.DESKTOP,
                 phase=ProvisioningPhase.NORMAL, part_of_domain=False, domain=None,
                 tenants=None):
        self.name = name
        self.serial = serial
        self.chassis = chassis
        self.phase = phase

        self.identity = mock.Mock()
        self.identity.collect.side_effect = lambda: CollectorResult(data={
            "current_name": self.name,
            "provisioning_phase": self.phase,
        })

        self.hardware = mock.Mock()
        self.hardware.collect.side_effect = lambda: CollectorResult(data={
            "serial": self.serial, "asset_tag": "", "chassis": self.chassis,
        })

        self.queries = mock.Mock()
        self.queries.get_domain_membership.return_value = {
            "part_of_domain": part_of_domain, "domain": domain,
        }
        self.queries.get_cloud_join_entries.return_value = [
            {"id": str(i), "tenant_id": t} for i, t in enumerate(tenants or [])
        ]

        self.host = mock.Mock()
        self.host.rename_computer.side_effect = self._rename

        self.scheduler = mock.Mock()
        self.scheduler.ensure_scheduled.return_value = True

    def _rename(self, new_name):
        self.name = new_name

    def pipeline(self, dry_run=False):
        return ReconciliationPipeline(
            config={},
            dry_run=dry_run,
            identity_collector=self.identity,
            resolver=HardwareIdentityResolver(_NAMING, collector=self.hardware),
            detector=DomainJoinDetector(self.queries),
            executor=RenameExecutor(_RESTART, self.host),
            scheduler=self.scheduler,
        )


class TestScenarios(unittest.TestCase):

    def test_vendor_name_renamed_to_serial(self):
        device = FakeDevice()
        outcome = device.pipeline().run()

        self.assertEqual(outcome.decision, ApplyRename(new_name="PF3KX99"))
        self.assertEqual(outcome.result, Completed(new_name="PF3KX99", restart_delay_seconds=600))
        self.assertEqual(outcome.exit_code, ExitCode.SUCCESS)
        device.host.rename_computer.assert_called_once_with("PF3KX99")
        device.host.schedule_restart.assert_called_once_with(600, "Restarting in 10 minutes")
        device.scheduler.ensure_scheduled.assert_called_once()
        self.assertTrue(outcome.scheduler_ensured)

    def test_snapshot_captures_facts(self):
        device = FakeDevice(tenants=["tenant-1"])
        snapshot = device.pipeline().run().snapshot
        self.assertEqual(snapshot.current_name, "DESKTOP-AB12CD")
        self.assertEqual(snapshot.hardware_tag, "PF3KX99 ")
        self.assertEqual(snapshot.chassis, ChassisType.DESKTOP)
        self.assertEqual(snapshot.directory.kind, "cloud")

    def test_blank_serial_uses_sentinel(self):
        device = FakeDevice(serial="")
        outcome = device.pipeline().run()
        self.assertEqual(outcome.decision, ApplyRename(new_name="UnknownSerial"))
        self.assertEqual(outcome.exit_code, ExitCode.SUCCESS)

    def test_already_correct_is_noop(self):
        device = FakeDevice(name="pf3kx99")
        outcome = device.pipeline().run()
        self.assertIsInstance(outcome.decision, NoOpAlreadyCorrect)
        self.assertEqual(outcome.exit_code, ExitCode.SUCCESS)
        device.host.rename_computer.assert_not_called()
        device.scheduler.ensure_scheduled.assert_called_once()

    def test_second_run_is_noop(self):
        device = FakeDevice()
        first = device.pipeline().run()
        second = device.pipeline().run()
        self.assertIsInstance(first.result, Completed)
        self.assertIsInstance(second.decision, NoOpAlreadyCorrect)
        self.assertEqual(device.host.rename_computer.call_count, 1)

    def test_on_premises_unreachable_aborts_before_decision(self):
        device = FakeDevice(part_of_domain=True, domain="corp.contoso.com")
        device.queries.probe_directory_root.side_effect = RuntimeError("The server is not operational")
        with mock.patch("device_rename.reconcile.pipeline.decide") as decide:
            outcome = device.pipeline().run()
            decide.assert_not_called()

        self.assertEqual(outcome.exit_code, ExitCode.FAILURE)
        self.assertIsNone(outcome.decision)
        device.host.rename_computer.assert_not_called()
        device.scheduler.ensure_scheduled.assert_called_once()

    def test_on_premises_reachable_renames(self):
        device = FakeDevice(part_of_domain=True, domain="corp.contoso.com")
        outcome = device.pipeline().run()
        self.assertEqual(outcome.exit_code, ExitCode.SUCCESS)
        self.assertEqual(outcome.snapshot.directory, OnPremisesJoin(domain_name="corp.contoso.com"))

    def test_directory_query_failure_aborts(self):
        device = FakeDevice()
        device.queries.get_domain_membership.side_effect = RuntimeError("WMI unavailable")
        outcome = device.pipeline().run()
        self.assertEqual(outcome.exit_code, ExitCode.FAILURE)
        device.host.rename_computer.assert_not_called()
        device.scheduler.ensure_scheduled.assert_called_once()

    def test_oobe_rename_defers_restart(self):
        device = FakeDevice(phase=ProvisioningPhase.OUT_OF_BOX)
        outcome = device.pipeline().run()
        self.assertEqual(outcome.exit_code, ExitCode.RESTART_DEFERRED)
        self.assertEqual(int(outcome.exit_code), 1641)
        self.assertIsInstance(outcome.result, CompletedDeferredExitForProvisioning)
        device.host.schedule_restart.assert_not_called()

    def test_invalid_candidate_fails_before_directory(self):
        device = FakeDevice(serial="12345678")
        outcome = device.pipeline().run()
        self.assertIsInstance(outcome.decision, NoOpInvalidCandidate)
        self.assertEqual(outcome.exit_code, ExitCode.FAILURE)
        device.queries.get_domain_membership.assert_not_called()
        device.host.rename_computer.assert_not_called()
        device.scheduler.ensure_scheduled.assert_called_once()

    def test_rename_failure(self):
        device = FakeDevice()
        device.host.rename_computer.side_effect = RuntimeError("Access is denied")
        outcome = device.pipeline().run()
        self.assertEqual(outcome.exit_code, ExitCode.FAILURE)
        device.scheduler.ensure_scheduled.assert_called_once()

    def test_unknown_execution_result_is_not_reported_as_success(self):
        device = FakeDevice()
        pipeline = device.pipeline()
        pipeline.executor = mock.Mock()
        pipeline.executor.apply.return_value = object()
        with self.assertRaises(TypeError):
            pipeline.run()
        device.scheduler.ensure_scheduled.assert_not_called()


class TestFilterAndModes(unittest.TestCase):

    def test_prefix_mismatch_is_silent_success(self):
        device = FakeDevice(name="LAB-0001")
        outcome = device.pipeline().run(name_prefix="DESKTOP-")
        self.assertEqual(outcome.exit_code, ExitCode.SUCCESS)
        self.assertIsNone(outcome.decision)
        device.hardware.collect.assert_not_called()
        device.scheduler.ensure_scheduled.assert_not_called()

    def test_prefix_match_is_case_insensitive(self):
        device = FakeDevice(name="desktop-ab12cd")
        outcome = device.pipeline().run(name_prefix="DESKTOP-")
        self.assertEqual(outcome.decision, ApplyRename(new_name="PF3KX99"))

    def test_dry_run_makes_no_changes(self):
        device = FakeDevice()
        outcome = device.pipeline(dry_run=True).run()
        self.assertEqual(outcome.decision, ApplyRename(new_name="PF3KX99"))
        self.assertEqual(outcome.exit_code, ExitCode.SUCCESS)
        self.assertIsNone(outcome.result)
        device.host.rename_computer.assert_not_called()
        device.host.schedule_restart.assert_not_called()
        device.scheduler.ensure_scheduled.assert_not_called()

    def test_dry_run_invalid_candidate_reports_success(self):
        device = FakeDevice(serial="12345678")
        outcome = device.pipeline(dry_run=True).run()
        self.assertIsInstance(outcome.decision, NoOpInvalidCandidate)
        self.assertEqual(outcome.exit_code, ExitCode.SUCCESS)

    def test_dry_run_still_fails_on_unreachable_domain(self):
        device = FakeDevice(part_of_domain=True, domain="corp")
        device.queries.probe_directory_root.side_effect = RuntimeError("down")
        outcome = device.pipeline(dry_run=True).run()
        self.assertEqual(outcome.exit_code, ExitCode.FAILURE)
        device.scheduler.ensure_scheduled.assert_not_called()


class TestSchedulerFailure(unittest.TestCase):

    def test_scheduler_failure_turns_success_into_failure(self):
        device = FakeDevice(name="PF3KX99")
        device.scheduler.ensure_scheduled.side_effect = SchedulerError("registration denied")
        outcome = device.pipeline().run()
        self.assertEqual(outcome.exit_code, ExitCode.FAILURE)
        self.assertFalse(outcome.scheduler_ensured)
        self.assertIn("registration denied", outcome.summary)

    def test_scheduler_failure_keeps_deferred_code(self):
        device = FakeDevice(phase=ProvisioningPhase.OUT_OF_BOX)
        device.scheduler.ensure_scheduled.side_effect = SchedulerError("registration denied")
        outcome = device.pipeline().run()
        self.assertEqual(outcome.exit_code, ExitCode.RESTART_DEFERRED)


if __name__ == "__main__":
    unittest.main()
