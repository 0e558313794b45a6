"""Static region to availability-zone tables.

The tables are looked up, never queried from the provider. A region that is
missing here is an error rather than an empty zone list.
"""
from __future__ import annotations

from typing import Dict, List

from bootloader.errors import ValidationError

AVAILABILITY_ZONES: Dict[str, Dict[str, List[str]]] = {
  "gcp": {
    "us-west1": ["us-west1-a", "us-west1-b"],
    "us-central1": ["us-central1-a", "us-central1-b", "us-central1-c", "us-central1-f"],
    "us-east1": ["us-east1-b", "us-east1-c", "us-east1-d"],
    "europe-west1": ["europe-west1-b", "europe-west1-c", "europe-west1-d"],
    "asia-east1": ["asia-east1-a", "asia-east1-b", "asia-east1-c"],
    "asia-northeast1": ["asia-northeast1-a", "asia-northeast1-b", "asia-northeast1-c"],
  },
  "aws": {
    "us-east-1": ["us-east-1a", "us-east-1b", "us-east-1c", "us-east-1d", "us-east-1e"],
    "us-east-2": ["us-east-2a", "us-east-2b", "us-east-2c"],
    "us-west-1": ["us-west-1a", "us-west-1b"],
    "us-west-2": ["us-west-2a", "us-west-2b", "us-west-2c"],
    "ca-central-1": ["ca-central-1a", "ca-central-1b"],
    "eu-west-1": ["eu-west-1a", "eu-west-1b", "eu-west-1c"],
    "eu-west-2": ["eu-west-2a", "eu-west-2b"],
    "eu-central-1": ["eu-central-1a", "eu-central-1b"],
    "ap-south-1": ["ap-south-1a", "ap-south-1b"],
    "ap-southeast-1": ["ap-southeast-1a", "ap-southeast-1b"],
    "ap-southeast-2": ["ap-southeast-2a", "ap-southeast-2b", "ap-southeast-2c"],
    "ap-northeast-1": ["ap-northeast-1a", "ap-northeast-1c"],
    "ap-northeast-2": ["ap-northeast-2a", "ap-northeast-2c"],
    "sa-east-1": ["sa-east-1a", "sa-east-1b", "sa-east-1c"],
  },
  "azure": {
    "eastus": ["1", "2", "3"],
    "eastus2": ["1", "2", "3"],
    "centralus": ["1", "2", "3"],
    "westus2": ["1", "2", "3"],
    "westeurope": ["1", "2", "3"],
    "northeurope": ["1", "2", "3"],
    "southeastasia": ["1", "2", "3"],
  },
}


def availability_zones(iaas: str, region: str) -> List[str]:
  zones = AVAILABILITY_ZONES.get(iaas, {}).get(region)
  if not zones:
    raise ValidationError(f"No availability zones are known for {iaas} region '{region}'.")
  return list(zones)
