"""Virtual machine description returned by the Resource Manager compute API.

Only the parts the build reads are modelled. Any level may be missing while
the platform is still converging, so every field is optional.
"""

from dataclasses import dataclass
from typing import Any, Optional

from .exceptions import IncompleteResourceError


@dataclass
class VirtualHardDisk:
    uri: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["VirtualHardDisk"]:
        if data is None:
            return None
        return cls(uri=data.get("uri"))


@dataclass
class OSDisk:
    name: Optional[str] = None
    os_type: Optional[str] = None
    vhd: Optional[VirtualHardDisk] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["OSDisk"]:
        if data is None:
            return None
        return cls(
            name=data.get("name"),
            os_type=data.get("osType"),
            vhd=VirtualHardDisk.from_dict(data.get("vhd")),
        )


@dataclass
class StorageProfile:
    os_disk: Optional[OSDisk] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["StorageProfile"]:
        if data is None:
            return None
        return cls(os_disk=OSDisk.from_dict(data.get("osDisk")))


@dataclass
class VirtualMachineProperties:
    provisioning_state: Optional[str] = None
    storage_profile: Optional[StorageProfile] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["VirtualMachineProperties"]:
        if data is None:
            return None
        return cls(
            provisioning_state=data.get("provisioningState"),
            storage_profile=StorageProfile.from_dict(data.get("storageProfile")),
        )


@dataclass
class VirtualMachine:
    id: Optional[str] = None
    name: Optional[str] = None
    location: Optional[str] = None
    properties: Optional[VirtualMachineProperties] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VirtualMachine":
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            location=data.get("location"),
            properties=VirtualMachineProperties.from_dict(data.get("properties")),
        )

    @classmethod
    def with_os_disk_vhd(cls, uri: str, name: Optional[str] = None) -> "VirtualMachine":
        return cls(
            name=name,
            properties=VirtualMachineProperties(
                storage_profile=StorageProfile(os_disk=OSDisk(vhd=VirtualHardDisk(uri=uri)))
            ),
        )


def extract_os_disk_vhd_uri(vm: VirtualMachine) -> str:
    """Return the VHD URI of the VM's OS disk.

    Raises IncompleteResourceError naming the first level that is not set.
    """
    resource = f"Virtual machine '{vm.name}'" if vm.name else "Virtual machine"

    properties = vm.properties
    if properties is None:
        raise IncompleteResourceError(resource, "properties")
    storage_profile = properties.storage_profile
    if storage_profile is None:
        raise IncompleteResourceError(resource, "properties.storageProfile")
    os_disk = storage_profile.os_disk
    if os_disk is None:
        raise IncompleteResourceError(resource, "properties.storageProfile.osDisk")
    vhd = os_disk.vhd
    if vhd is None:
        raise IncompleteResourceError(resource, "properties.storageProfile.osDisk.vhd")
    if vhd.uri is None:
        raise IncompleteResourceError(resource, "properties.storageProfile.osDisk.vhd.uri")
    return vhd.uri
