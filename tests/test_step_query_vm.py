import pytest

from armpiper.compute import OSDisk, StorageProfile, VirtualMachine, VirtualMachineProperties
from armpiper.constants import ARM_COMPUTE_NAME, ARM_OS_DISK_VHD, ARM_RESOURCE_GROUP_NAME, ERROR
from armpiper.exceptions import IncompleteResourceError, MissingStateError
from armpiper.runner import Runner
from armpiper.state import StateBag
from armpiper.steps import StepQueryVM
from armpiper.types import RunOutcome, StepAction


def create_virtual_machine_from_uri(vhd_uri: str) -> VirtualMachine:
    return VirtualMachine.with_os_disk_vhd(vhd_uri)


def create_test_state_bag(resource_group_name="Unit Test: ResourceGroupName", compute_name="Unit Test: ComputeName"):
    state = StateBag()
    state.put(ARM_COMPUTE_NAME, compute_name)
    state.put(ARM_RESOURCE_GROUP_NAME, resource_group_name)
    return state


def make_step(query, messages=None, errors=None):
    messages = messages if messages is not None else []
    errors = errors if errors is not None else []
    return StepQueryVM(query=query, say=messages.append, error=errors.append)


@pytest.mark.asyncio
async def test_query_vm_should_fail_if_query_fails():
    async def query(resource_group_name, compute_name):
        raise RuntimeError("!! Unit Test FAIL !!")

    errors = []
    state = create_test_state_bag()
    result = await make_step(query, errors=errors).run(state)

    assert result is StepAction.HALT
    _, ok = state.get_ok(ERROR)
    assert ok
    assert str(errors[0]) == "!! Unit Test FAIL !!"
    assert ARM_OS_DISK_VHD not in state


@pytest.mark.asyncio
async def test_query_vm_should_pass_if_query_passes():
    async def query(resource_group_name, compute_name):
        return create_virtual_machine_from_uri("test.vhd")

    state = create_test_state_bag()
    result = await make_step(query).run(state)

    assert result is StepAction.CONTINUE
    _, ok = state.get_ok(ERROR)
    assert not ok


@pytest.mark.asyncio
async def test_query_vm_should_take_arguments_from_state_bag():
    received = {}

    async def query(resource_group_name, compute_name):
        received["resource_group_name"] = resource_group_name
        received["compute_name"] = compute_name
        return create_virtual_machine_from_uri("test.vhd")

    state = create_test_state_bag(resource_group_name="  rg with spaces ", compute_name="VM-1 ")
    result = await make_step(query).run(state)

    assert result is StepAction.CONTINUE
    assert received["resource_group_name"] == state.get(ARM_RESOURCE_GROUP_NAME)
    assert received["compute_name"] == state.get(ARM_COMPUTE_NAME)

    os_disk_vhd, ok = state.get_ok(ARM_OS_DISK_VHD)
    assert ok
    assert os_disk_vhd == "test.vhd"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "vm",
    [
        VirtualMachine(name="vm"),
        VirtualMachine(properties=VirtualMachineProperties()),
        VirtualMachine(properties=VirtualMachineProperties(storage_profile=StorageProfile())),
        VirtualMachine(properties=VirtualMachineProperties(storage_profile=StorageProfile(os_disk=OSDisk()))),
    ],
)
async def test_query_vm_should_halt_on_incomplete_vm(vm):
    async def query(resource_group_name, compute_name):
        return vm

    messages, errors = [], []
    state = create_test_state_bag()
    result = await make_step(query, messages, errors).run(state)

    assert result is StepAction.HALT
    assert isinstance(state.get(ERROR), IncompleteResourceError)
    assert "The VM was found but has no OS disk VHD yet" in messages
    assert "Error querying the VM" not in messages
    assert ARM_OS_DISK_VHD not in state


@pytest.mark.asyncio
async def test_query_vm_reports_query_failure_distinctly():
    async def query(resource_group_name, compute_name):
        raise RuntimeError("not found")

    messages = []
    await make_step(query, messages).run(create_test_state_bag())

    assert "Error querying the VM" in messages
    assert "The VM was found but has no OS disk VHD yet" not in messages


@pytest.mark.asyncio
async def test_query_vm_without_precondition_fails_to_fetch():
    async def query(resource_group_name, compute_name):
        return create_virtual_machine_from_uri("test.vhd")

    with pytest.raises(MissingStateError):
        await make_step(query).run(StateBag())


@pytest.mark.asyncio
async def test_query_vm_cleanup_is_a_noop():
    calls = []

    async def query(resource_group_name, compute_name):
        calls.append((resource_group_name, compute_name))
        return create_virtual_machine_from_uri("test.vhd")

    state = StateBag()
    step = make_step(query)
    await step.cleanup(state)

    assert calls == []
    assert len(state) == 0
    assert not step.unwind


def test_query_vm_declares_state_keys():
    async def query(resource_group_name, compute_name):
        return create_virtual_machine_from_uri("test.vhd")

    step = make_step(query)
    assert step.name == "query_vm"
    assert step.required_state_keys == [ARM_RESOURCE_GROUP_NAME.name, ARM_COMPUTE_NAME.name]
    assert step.provided_state_keys == [ARM_OS_DISK_VHD.name]


def test_query_vm_needs_client_or_query():
    with pytest.raises(ValueError):
        StepQueryVM()


@pytest.mark.asyncio
async def test_run_completes_with_disk_uri():
    async def query(resource_group_name, compute_name):
        assert (resource_group_name, compute_name) == ("rg1", "vm1")
        return create_virtual_machine_from_uri("disk.vhd")

    state = create_test_state_bag(resource_group_name="rg1", compute_name="vm1")
    result = await Runner([make_step(query)]).run(state)

    assert result.outcome is RunOutcome.COMPLETED
    assert state.get(ARM_OS_DISK_VHD) == "disk.vhd"
    assert ERROR not in state


@pytest.mark.asyncio
async def test_run_halts_when_vm_not_found():
    async def query(resource_group_name, compute_name):
        raise RuntimeError("not found")

    state = create_test_state_bag(resource_group_name="rg1", compute_name="vm1")
    result = await Runner([make_step(query)]).run(state)

    assert result.outcome is RunOutcome.HALTED
    assert str(state.get(ERROR)) == "not found"
    assert ARM_OS_DISK_VHD not in state
    assert result.cleaned == []
