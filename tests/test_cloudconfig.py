import pytest
import yaml

from bootloader.cloudconfig import (
  AWSCloudConfigGenerator,
  AzureCloudConfigGenerator,
  CloudConfigInput,
  CloudConfigManager,
  GCPCloudConfigGenerator,
)
from bootloader.errors import ValidationError
from bootloader.state import LB
from bootloader.terraform import Manager
from tests.fakes import FakeClientProvider, FakeLogger, FakeTerraformExecutor, gcp_state

GCP_OUTPUTS = {
  "network_name": "net",
  "subnetwork_name": "subnet",
  "internal_tag_name": "internal",
  "router_backend_service": "router",
  "ws_target_pool": "ws",
  "ssh_proxy_target_pool": "ssh",
  "tcp_router_target_pool": "tcp",
}


def by_name(items):
  return {item["name"]: item for item in items}


def test_gcp_cloud_config_has_one_subnet_per_zone():
  config = GCPCloudConfigGenerator().generate(CloudConfigInput(azs=["us-east1-b", "us-east1-c"], outputs=GCP_OUTPUTS))

  assert [az["cloud_properties"]["zone"] for az in config["azs"]] == ["us-east1-b", "us-east1-c"]
  subnets = config["networks"][0]["subnets"]
  assert [subnet["range"] for subnet in subnets] == ["10.0.16.0/20", "10.0.32.0/20"]
  assert subnets[0]["gateway"] == "10.0.16.1"
  assert subnets[0]["reserved"] == ["10.0.16.2-10.0.16.3", "10.0.31.254"]
  assert subnets[0]["static"] == ["10.0.31.190-10.0.31.253"]
  assert subnets[1]["azs"] == ["z2"]
  assert config["compilation"]["az"] == "z1"
  assert "default" in by_name(config["vm_types"])
  assert "lb" not in by_name(config["vm_extensions"])


def test_gcp_cf_load_balancer_adds_network_extensions():
  config = GCPCloudConfigGenerator().generate(CloudConfigInput(azs=["z"], outputs=GCP_OUTPUTS, lb_type="cf"))

  extensions = by_name(config["vm_extensions"])
  assert extensions["cf-router-network-properties"]["cloud_properties"]["backend_service"] == "router"
  assert extensions["diego-ssh-proxy-network-properties"]["cloud_properties"]["target_pool"] == "ssh"
  assert extensions["cf-tcp-router-network-properties"]["cloud_properties"]["target_pool"] == "tcp"


def test_aws_subnets_come_from_terraform():
  outputs = {
    "internal_subnet_ids": ["subnet-a", "subnet-b"],
    "internal_subnet_cidrs": ["10.0.16.0/20", "10.0.32.0/20"],
    "internal_security_group": "sg-internal",
    "concourse_lb_name": "elb",
    "concourse_lb_internal_security_group": "sg-lb",
  }

  config = AWSCloudConfigGenerator().generate(
    CloudConfigInput(azs=["us-west-2a", "us-west-2b"], outputs=outputs, lb_type="concourse")
  )

  subnets = config["networks"][0]["subnets"]
  assert [subnet["cloud_properties"]["subnet"] for subnet in subnets] == ["subnet-a", "subnet-b"]
  assert subnets[1]["cloud_properties"]["security_groups"] == ["sg-internal"]
  lb = by_name(config["vm_extensions"])["lb"]["cloud_properties"]
  assert lb == {"elbs": ["elb"], "security_groups": ["sg-lb", "sg-internal"]}


def test_aws_needs_a_subnet_per_zone():
  outputs = {"internal_subnet_ids": ["subnet-a"], "internal_subnet_cidrs": ["10.0.16.0/20"], "internal_security_group": "sg"}

  with pytest.raises(ValidationError):
    AWSCloudConfigGenerator().generate(CloudConfigInput(azs=["a", "b"], outputs=outputs))


def test_malformed_subnet_range_is_a_validation_error():
  outputs = {"internal_subnet_ids": ["subnet-a"], "internal_subnet_cidrs": ["not-a-cidr"], "internal_security_group": "sg"}

  with pytest.raises(ValidationError) as excinfo:
    AWSCloudConfigGenerator().generate(CloudConfigInput(azs=["a"], outputs=outputs))

  assert "not-a-cidr" in str(excinfo.value)


def test_azure_zones_share_the_bosh_subnet():
  outputs = {"bosh_network_name": "vnet", "bosh_subnet_name": "bosh", "bosh_default_security_group": "nsg"}

  config = AzureCloudConfigGenerator().generate(CloudConfigInput(azs=["1", "2", "3"], outputs=outputs))

  subnets = config["networks"][0]["subnets"]
  assert len(subnets) == 1
  assert subnets[0]["azs"] == ["z1", "z2", "z3"]
  assert subnets[0]["reserved"][0] == "10.0.0.2-10.0.0.10"


def test_manager_renders_yaml_from_terraform_outputs():
  terraform = Manager(FakeTerraformExecutor(), FakeLogger())
  state = gcp_state(lb=LB(type="concourse"))
  state.infra = terraform.apply(state)
  clients = FakeClientProvider()
  manager = CloudConfigManager(terraform, clients, FakeLogger())

  manager.update(state)

  document = yaml.safe_load(clients.director_client.manifests[0])
  assert len(document["azs"]) == 4
  assert by_name(document["vm_extensions"])["lb"]["cloud_properties"]["target_pool"] == "concourse_target_pool-value"


def test_unknown_region_is_a_validation_error():
  terraform = Manager(FakeTerraformExecutor(), FakeLogger())
  state = gcp_state()
  state.gcp.region = "mars-north1"

  with pytest.raises(ValidationError):
    CloudConfigManager(terraform, FakeClientProvider(), FakeLogger()).generate(state)
