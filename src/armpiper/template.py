"""Deployment template for the build VM."""

import json
from pathlib import Path
from typing import Any

from .settings import ArmSettings

SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#"

_VNET_NAME = "packerNetwork"
_SUBNET_NAME = "packerSubnet"
_PUBLIC_IP_NAME = "packerPublicIP"
_NIC_NAME = "packerNic"


def _parameter(type_: str = "string") -> dict[str, str]:
    return {"type": type_}


def build_template() -> dict[str, Any]:
    """Return the default template: a network, a public IP, a NIC and a VM with a VHD OS disk."""
    vnet_id = f"[resourceId('Microsoft.Network/virtualNetworks', '{_VNET_NAME}')]"
    subnet_id = f"[concat({vnet_id[1:-1]}, '/subnets/{_SUBNET_NAME}')]"
    public_ip_id = f"[resourceId('Microsoft.Network/publicIPAddresses', '{_PUBLIC_IP_NAME}')]"
    nic_id = f"[resourceId('Microsoft.Network/networkInterfaces', '{_NIC_NAME}')]"

    return {
        "$schema": SCHEMA,
        "contentVersion": "1.0.0.0",
        "parameters": {
            "adminUsername": _parameter(),
            "adminPassword": _parameter("securestring"),
            "vmName": _parameter(),
            "vmSize": _parameter(),
            "osType": _parameter(),
            "imagePublisher": _parameter(),
            "imageOffer": _parameter(),
            "imageSku": _parameter(),
            "imageVersion": _parameter(),
            "osDiskVhdUri": _parameter(),
        },
        "resources": [
            {
                "type": "Microsoft.Network/virtualNetworks",
                "apiVersion": "2022-07-01",
                "name": _VNET_NAME,
                "location": "[resourceGroup().location]",
                "properties": {
                    "addressSpace": {"addressPrefixes": ["10.0.0.0/16"]},
                    "subnets": [{"name": _SUBNET_NAME, "properties": {"addressPrefix": "10.0.0.0/24"}}],
                },
            },
            {
                "type": "Microsoft.Network/publicIPAddresses",
                "apiVersion": "2022-07-01",
                "name": _PUBLIC_IP_NAME,
                "location": "[resourceGroup().location]",
                "properties": {"publicIPAllocationMethod": "Dynamic"},
            },
            {
                "type": "Microsoft.Network/networkInterfaces",
                "apiVersion": "2022-07-01",
                "name": _NIC_NAME,
                "location": "[resourceGroup().location]",
                "dependsOn": [vnet_id, public_ip_id],
                "properties": {
                    "ipConfigurations": [
                        {
                            "name": "ipconfig",
                            "properties": {
                                "privateIPAllocationMethod": "Dynamic",
                                "publicIPAddress": {"id": public_ip_id},
                                "subnet": {"id": subnet_id},
                            },
                        }
                    ]
                },
            },
            {
                "type": "Microsoft.Compute/virtualMachines",
                "apiVersion": "2023-03-01",
                "name": "[parameters('vmName')]",
                "location": "[resourceGroup().location]",
                "dependsOn": [nic_id],
                "properties": {
                    "hardwareProfile": {"vmSize": "[parameters('vmSize')]"},
                    "osProfile": {
                        "computerName": "[parameters('vmName')]",
                        "adminUsername": "[parameters('adminUsername')]",
                        "adminPassword": "[parameters('adminPassword')]",
                    },
                    "storageProfile": {
                        "imageReference": {
                            "publisher": "[parameters('imagePublisher')]",
                            "offer": "[parameters('imageOffer')]",
                            "sku": "[parameters('imageSku')]",
                            "version": "[parameters('imageVersion')]",
                        },
                        "osDisk": {
                            "name": "osdisk",
                            "osType": "[parameters('osType')]",
                            "vhd": {"uri": "[parameters('osDiskVhdUri')]"},
                            "caching": "ReadWrite",
                            "createOption": "FromImage",
                        },
                    },
                    "networkProfile": {"networkInterfaces": [{"id": nic_id}]},
                },
            },
        ],
    }


def os_disk_vhd_uri(settings: ArmSettings, compute_name: str) -> str:
    return (
        f"https://{settings.storage_account}.blob.core.windows.net/"
        f"{settings.storage_container}/{compute_name}-osdisk.vhd"
    )


def build_template_parameters(settings: ArmSettings, compute_name: str) -> dict[str, Any]:
    """Return the ``parameters`` object for a deployment of ``build_template()``."""
    values = {
        "adminUsername": settings.admin_username,
        "adminPassword": settings.admin_password.get_secret_value(),
        "vmName": compute_name,
        "vmSize": settings.vm_size,
        "osType": settings.os_type,
        "imagePublisher": settings.image_publisher,
        "imageOffer": settings.image_offer,
        "imageSku": settings.image_sku,
        "imageVersion": settings.image_version,
        "osDiskVhdUri": os_disk_vhd_uri(settings, compute_name),
    }
    return {name: {"value": value} for name, value in values.items()}


def load_template(path: str) -> dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))
