"""HCL templates for each IAAS.

A template is assembled from a base network fragment plus optional load
balancer and jumpbox fragments. Everything environment specific is passed in
as terraform variables, so the template text only depends on TemplateInput.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from bootloader.errors import ValidationError

DIRECTOR_INTERNAL_IP = "10.0.0.6"
JUMPBOX_INTERNAL_IP = "10.0.0.5"
BOSH_SUBNET_CIDR = "10.0.0.0/24"
BOSH_SUBNET_GATEWAY = "10.0.0.1"


@dataclass(frozen=True)
class TemplateInput:
  lb_type: str = ""
  jumpbox: bool = False


GCP_BASE = """
variable "project_id" { type = string }
variable "region" { type = string }
variable "zone" { type = string }
variable "env_id" { type = string }
variable "credentials" { type = string }
variable "subnet_cidr" {
  type    = string
  default = "10.0.0.0/16"
}

provider "google" {
  credentials = file(var.credentials)
  project     = var.project_id
  region      = var.region
}

resource "google_compute_network" "bbl_network" {
  name                    = "${var.env_id}-network"
  auto_create_subnetworks = false
}

resource "google_compute_subnetwork" "bbl_subnet" {
  name          = "${var.env_id}-subnet"
  ip_cidr_range = var.subnet_cidr
  network       = google_compute_network.bbl_network.self_link
}

resource "google_compute_address" "bosh_external_ip" {
  name = "${var.env_id}-bosh-external-ip"
}

resource "google_compute_firewall" "bosh_open" {
  name          = "${var.env_id}-bosh-open"
  network       = google_compute_network.bbl_network.name
  source_ranges = ["0.0.0.0/0"]

  allow {
    protocol = "tcp"
    ports    = ["22", "6868", "25555"]
  }

  target_tags = ["${var.env_id}-bosh-open"]
}

resource "google_compute_firewall" "internal" {
  name        = "${var.env_id}-internal"
  network     = google_compute_network.bbl_network.name
  source_tags = ["${var.env_id}-bosh-open", "${var.env_id}-internal"]

  allow {
    protocol = "icmp"
  }

  allow {
    protocol = "tcp"
  }

  allow {
    protocol = "udp"
  }

  target_tags = ["${var.env_id}-internal"]
}

output "external_ip" {
  value = google_compute_address.bosh_external_ip.address
}

output "network_name" {
  value = google_compute_network.bbl_network.name
}

output "subnetwork_name" {
  value = google_compute_subnetwork.bbl_subnet.name
}

output "bosh_open_tag_name" {
  value = "${var.env_id}-bosh-open"
}

output "internal_tag_name" {
  value = "${var.env_id}-internal"
}
"""

GCP_DIRECTOR_EXTERNAL = """
output "director_address" {
  value = "https://${google_compute_address.bosh_external_ip.address}:25555"
}
"""

GCP_JUMPBOX = """
resource "google_compute_address" "jumpbox_ip" {
  name = "${var.env_id}-jumpbox-ip"
}

output "jumpbox_url" {
  value = "${google_compute_address.jumpbox_ip.address}:22"
}

output "director_address" {
  value = "https://%(director_ip)s:25555"
}
"""

GCP_CONCOURSE_LB = """
resource "google_compute_target_pool" "concourse_target_pool" {
  name = "${var.env_id}-concourse"
}

resource "google_compute_address" "concourse_address" {
  name = "${var.env_id}-concourse"
}

resource "google_compute_forwarding_rule" "concourse_http" {
  name        = "${var.env_id}-concourse-http"
  target      = google_compute_target_pool.concourse_target_pool.self_link
  port_range  = "80"
  ip_protocol = "TCP"
  ip_address  = google_compute_address.concourse_address.address
}

resource "google_compute_forwarding_rule" "concourse_https" {
  name        = "${var.env_id}-concourse-https"
  target      = google_compute_target_pool.concourse_target_pool.self_link
  port_range  = "443"
  ip_protocol = "TCP"
  ip_address  = google_compute_address.concourse_address.address
}

resource "google_compute_forwarding_rule" "concourse_ssh" {
  name        = "${var.env_id}-concourse-ssh"
  target      = google_compute_target_pool.concourse_target_pool.self_link
  port_range  = "2222"
  ip_protocol = "TCP"
  ip_address  = google_compute_address.concourse_address.address
}

resource "google_compute_firewall" "concourse_open" {
  name          = "${var.env_id}-concourse-open"
  network       = google_compute_network.bbl_network.name
  source_ranges = ["0.0.0.0/0"]

  allow {
    protocol = "tcp"
    ports    = ["443", "2222"]
  }

  target_tags = ["${google_compute_target_pool.concourse_target_pool.name}"]
}

output "concourse_target_pool" {
  value = google_compute_target_pool.concourse_target_pool.name
}

output "concourse_lb_ip" {
  value = google_compute_address.concourse_address.address
}
"""

GCP_CF_LB = """
variable "ssl_certificate" { type = string }
variable "ssl_certificate_private_key" { type = string }

resource "google_compute_global_address" "cf_address" {
  name = "${var.env_id}-cf"
}

resource "google_compute_ssl_certificate" "cf_cert" {
  name_prefix = "${var.env_id}-cf"
  certificate = file(var.ssl_certificate)
  private_key = file(var.ssl_certificate_private_key)

  lifecycle {
    create_before_destroy = true
  }
}

resource "google_compute_http_health_check" "cf_router" {
  name         = "${var.env_id}-cf"
  port         = 8080
  request_path = "/health"
}

resource "google_compute_instance_group" "router_lb" {
  name = "${var.env_id}-router-lb"
  zone = var.zone
}

resource "google_compute_backend_service" "router_lb_backend_service" {
  name          = "${var.env_id}-router-lb"
  port_name     = "https"
  protocol      = "HTTPS"
  timeout_sec   = 900
  health_checks = [google_compute_http_health_check.cf_router.self_link]

  backend {
    group = google_compute_instance_group.router_lb.self_link
  }
}

resource "google_compute_url_map" "cf_https_lb_url_map" {
  name            = "${var.env_id}-cf-https"
  default_service = google_compute_backend_service.router_lb_backend_service.self_link
}

resource "google_compute_target_https_proxy" "cf_https_lb_proxy" {
  name             = "${var.env_id}-cf-https"
  url_map          = google_compute_url_map.cf_https_lb_url_map.self_link
  ssl_certificates = [google_compute_ssl_certificate.cf_cert.self_link]
}

resource "google_compute_global_forwarding_rule" "cf_https_forwarding_rule" {
  name       = "${var.env_id}-cf-https"
  ip_address = google_compute_global_address.cf_address.address
  target     = google_compute_target_https_proxy.cf_https_lb_proxy.self_link
  port_range = "443"
}

resource "google_compute_address" "cf_ssh_proxy" {
  name = "${var.env_id}-cf-ssh-proxy"
}

resource "google_compute_target_pool" "cf_ssh_proxy" {
  name = "${var.env_id}-cf-ssh-proxy"
}

resource "google_compute_forwarding_rule" "cf_ssh_proxy" {
  name        = "${var.env_id}-cf-ssh-proxy"
  target      = google_compute_target_pool.cf_ssh_proxy.self_link
  port_range  = "2222"
  ip_protocol = "TCP"
  ip_address  = google_compute_address.cf_ssh_proxy.address
}

resource "google_compute_address" "cf_tcp_router" {
  name = "${var.env_id}-cf-tcp-router"
}

resource "google_compute_target_pool" "cf_tcp_router" {
  name = "${var.env_id}-cf-tcp-router"
}

resource "google_compute_forwarding_rule" "cf_tcp_router" {
  name        = "${var.env_id}-cf-tcp-router"
  target      = google_compute_target_pool.cf_tcp_router.self_link
  port_range  = "1024-32768"
  ip_protocol = "TCP"
  ip_address  = google_compute_address.cf_tcp_router.address
}

resource "google_compute_address" "cf_ws" {
  name = "${var.env_id}-cf-ws"
}

resource "google_compute_target_pool" "cf_ws" {
  name = "${var.env_id}-cf-ws"
}

resource "google_compute_forwarding_rule" "cf_ws_https" {
  name        = "${var.env_id}-cf-ws-https"
  target      = google_compute_target_pool.cf_ws.self_link
  port_range  = "443"
  ip_protocol = "TCP"
  ip_address  = google_compute_address.cf_ws.address
}

output "router_backend_service" {
  value = google_compute_backend_service.router_lb_backend_service.name
}

output "router_lb_ip" {
  value = google_compute_global_address.cf_address.address
}

output "ssh_proxy_target_pool" {
  value = google_compute_target_pool.cf_ssh_proxy.name
}

output "ssh_proxy_lb_ip" {
  value = google_compute_address.cf_ssh_proxy.address
}

output "tcp_router_target_pool" {
  value = google_compute_target_pool.cf_tcp_router.name
}

output "tcp_router_lb_ip" {
  value = google_compute_address.cf_tcp_router.address
}

output "ws_target_pool" {
  value = google_compute_target_pool.cf_ws.name
}

output "ws_lb_ip" {
  value = google_compute_address.cf_ws.address
}
"""

AWS_BASE = """
variable "access_key" { type = string }
variable "secret_key" { type = string }
variable "region" { type = string }
variable "env_id" { type = string }
variable "key_pair_name" { type = string }
variable "bosh_availability_zone" { type = string }
variable "availability_zones" { type = list(string) }
variable "vpc_cidr" {
  type    = string
  default = "10.0.0.0/16"
}

provider "aws" {
  access_key = var.access_key
  secret_key = var.secret_key
  region     = var.region
}

resource "aws_vpc" "vpc" {
  cidr_block           = var.vpc_cidr
  instance_tenancy     = "default"
  enable_dns_hostnames = true

  tags = {
    Name = "${var.env_id}-vpc"
  }
}

resource "aws_internet_gateway" "ig" {
  vpc_id = aws_vpc.vpc.id
}

resource "aws_subnet" "bosh_subnet" {
  vpc_id            = aws_vpc.vpc.id
  cidr_block        = "%(bosh_subnet_cidr)s"
  availability_zone = var.bosh_availability_zone

  tags = {
    Name = "${var.env_id}-bosh-subnet"
  }
}

resource "aws_route_table" "bosh_route_table" {
  vpc_id = aws_vpc.vpc.id

  route {
    cidr_block = "0.0.0.0/0"
    gateway_id = aws_internet_gateway.ig.id
  }
}

resource "aws_route_table_association" "bosh_subnet_route_table_association" {
  subnet_id      = aws_subnet.bosh_subnet.id
  route_table_id = aws_route_table.bosh_route_table.id
}

resource "aws_eip" "bosh_eip" {
  domain = "vpc"
}

resource "aws_security_group" "nat_security_group" {
  name        = "${var.env_id}-nat-security-group"
  description = "NAT"
  vpc_id      = aws_vpc.vpc.id

  ingress {
    protocol        = "-1"
    from_port       = 0
    to_port         = 0
    security_groups = [aws_security_group.internal_security_group.id]
  }

  egress {
    protocol    = "-1"
    from_port   = 0
    to_port     = 0
    cidr_blocks = ["0.0.0.0/0"]
  }
}

data "aws_ami" "nat" {
  most_recent = true
  owners      = ["amazon"]

  filter {
    name   = "name"
    values = ["amzn-ami-vpc-nat-*"]
  }
}

resource "aws_instance" "nat" {
  ami                    = data.aws_ami.nat.id
  instance_type          = "t2.medium"
  subnet_id              = aws_subnet.bosh_subnet.id
  key_name               = var.key_pair_name
  source_dest_check      = false
  vpc_security_group_ids = [aws_security_group.nat_security_group.id]

  tags = {
    Name = "${var.env_id}-nat"
  }
}

resource "aws_eip" "nat_eip" {
  domain   = "vpc"
  instance = aws_instance.nat.id
}

resource "aws_security_group" "bosh_security_group" {
  name        = "${var.env_id}-bosh-security-group"
  description = "BOSH director"
  vpc_id      = aws_vpc.vpc.id

  ingress {
    protocol    = "tcp"
    from_port   = 22
    to_port     = 22
    cidr_blocks = ["0.0.0.0/0"]
  }

  ingress {
    protocol    = "tcp"
    from_port   = 6868
    to_port     = 6868
    cidr_blocks = ["0.0.0.0/0"]
  }

  ingress {
    protocol    = "tcp"
    from_port   = 25555
    to_port     = 25555
    cidr_blocks = ["0.0.0.0/0"]
  }

  ingress {
    protocol        = "-1"
    from_port       = 0
    to_port         = 0
    security_groups = [aws_security_group.internal_security_group.id]
  }

  egress {
    protocol    = "-1"
    from_port   = 0
    to_port     = 0
    cidr_blocks = ["0.0.0.0/0"]
  }
}

resource "aws_security_group" "internal_security_group" {
  name        = "${var.env_id}-internal-security-group"
  description = "Internal"
  vpc_id      = aws_vpc.vpc.id

  ingress {
    protocol  = "-1"
    from_port = 0
    to_port   = 0
    self      = true
  }

  egress {
    protocol    = "-1"
    from_port   = 0
    to_port     = 0
    cidr_blocks = ["0.0.0.0/0"]
  }
}

resource "aws_subnet" "internal_subnets" {
  count             = length(var.availability_zones)
  vpc_id            = aws_vpc.vpc.id
  cidr_block        = cidrsubnet(var.vpc_cidr, 4, count.index + 1)
  availability_zone = element(var.availability_zones, count.index)

  tags = {
    Name = "${var.env_id}-internal-subnet${count.index}"
  }
}

resource "aws_route_table" "internal_route_table" {
  vpc_id = aws_vpc.vpc.id

  route {
    cidr_block           = "0.0.0.0/0"
    network_interface_id = aws_instance.nat.primary_network_interface_id
  }
}

resource "aws_route_table_association" "internal_subnet_route_table_associations" {
  count          = length(var.availability_zones)
  subnet_id      = element(aws_subnet.internal_subnets.*.id, count.index)
  route_table_id = aws_route_table.internal_route_table.id
}

output "external_ip" {
  value = aws_eip.bosh_eip.public_ip
}

output "vpc_id" {
  value = aws_vpc.vpc.id
}

output "bosh_subnet_id" {
  value = aws_subnet.bosh_subnet.id
}

output "bosh_subnet_availability_zone" {
  value = aws_subnet.bosh_subnet.availability_zone
}

output "bosh_security_group" {
  value = aws_security_group.bosh_security_group.id
}

output "internal_security_group" {
  value = aws_security_group.internal_security_group.id
}

output "internal_subnet_ids" {
  value = aws_subnet.internal_subnets.*.id
}

output "internal_subnet_cidrs" {
  value = aws_subnet.internal_subnets.*.cidr_block
}
"""

AWS_DIRECTOR_EXTERNAL = """
output "director_address" {
  value = "https://${aws_eip.bosh_eip.public_ip}:25555"
}
"""

AWS_JUMPBOX = """
resource "aws_eip" "jumpbox_eip" {
  domain = "vpc"
}

output "jumpbox_url" {
  value = "${aws_eip.jumpbox_eip.public_ip}:22"
}

output "director_address" {
  value = "https://%(director_ip)s:25555"
}
"""

AWS_LB_CERTIFICATE = """
variable "ssl_certificate" { type = string }
variable "ssl_certificate_private_key" { type = string }
variable "ssl_certificate_chain" {
  type    = string
  default = ""
}
variable "ssl_certificate_name_prefix" { type = string }

resource "aws_iam_server_certificate" "lb_cert" {
  name_prefix       = var.ssl_certificate_name_prefix
  certificate_body  = file(var.ssl_certificate)
  private_key       = file(var.ssl_certificate_private_key)
  certificate_chain = var.ssl_certificate_chain == "" ? null : file(var.ssl_certificate_chain)

  lifecycle {
    create_before_destroy = true
  }
}
"""

AWS_CONCOURSE_LB = """
resource "aws_security_group" "concourse_lb_security_group" {
  name        = "${var.env_id}-concourse-lb-security-group"
  description = "Concourse"
  vpc_id      = aws_vpc.vpc.id

  ingress {
    protocol    = "tcp"
    from_port   = 80
    to_port     = 80
    cidr_blocks = ["0.0.0.0/0"]
  }

  ingress {
    protocol    = "tcp"
    from_port   = 2222
    to_port     = 2222
    cidr_blocks = ["0.0.0.0/0"]
  }

  ingress {
    protocol    = "tcp"
    from_port   = 443
    to_port     = 443
    cidr_blocks = ["0.0.0.0/0"]
  }

  egress {
    protocol    = "-1"
    from_port   = 0
    to_port     = 0
    cidr_blocks = ["0.0.0.0/0"]
  }
}

resource "aws_security_group" "concourse_lb_internal_security_group" {
  name        = "${var.env_id}-concourse-lb-internal-security-group"
  description = "Concourse Internal"
  vpc_id      = aws_vpc.vpc.id

  ingress {
    protocol        = "tcp"
    from_port       = 0
    to_port         = 65535
    security_groups = [aws_security_group.concourse_lb_security_group.id]
  }

  egress {
    protocol    = "-1"
    from_port   = 0
    to_port     = 0
    cidr_blocks = ["0.0.0.0/0"]
  }
}

resource "aws_elb" "concourse_lb" {
  name            = "${substr(var.env_id, 0, 20)}-concourse-lb"
  subnets         = aws_subnet.internal_subnets.*.id
  security_groups = [aws_security_group.concourse_lb_security_group.id]

  health_check {
    healthy_threshold   = 2
    unhealthy_threshold = 10
    interval            = 30
    target              = "TCP:8080"
    timeout             = 5
  }

  listener {
    instance_port     = 8080
    instance_protocol = "tcp"
    lb_port           = 80
    lb_protocol       = "tcp"
  }

  listener {
    instance_port     = 2222
    instance_protocol = "tcp"
    lb_port           = 2222
    lb_protocol       = "tcp"
  }

  listener {
    instance_port      = 8080
    instance_protocol  = "tcp"
    lb_port            = 443
    lb_protocol        = "ssl"
    ssl_certificate_id = aws_iam_server_certificate.lb_cert.arn
  }
}

output "concourse_lb_name" {
  value = aws_elb.concourse_lb.name
}

output "concourse_lb_url" {
  value = aws_elb.concourse_lb.dns_name
}

output "concourse_lb_internal_security_group" {
  value = aws_security_group.concourse_lb_internal_security_group.id
}
"""

AWS_CF_LB = """
resource "aws_security_group" "cf_router_lb_security_group" {
  name        = "${var.env_id}-cf-router-lb-security-group"
  description = "CF Router"
  vpc_id      = aws_vpc.vpc.id

  ingress {
    protocol    = "tcp"
    from_port   = 80
    to_port     = 80
    cidr_blocks = ["0.0.0.0/0"]
  }

  ingress {
    protocol    = "tcp"
    from_port   = 443
    to_port     = 443
    cidr_blocks = ["0.0.0.0/0"]
  }

  ingress {
    protocol    = "tcp"
    from_port   = 4443
    to_port     = 4443
    cidr_blocks = ["0.0.0.0/0"]
  }

  egress {
    protocol    = "-1"
    from_port   = 0
    to_port     = 0
    cidr_blocks = ["0.0.0.0/0"]
  }
}

resource "aws_security_group" "cf_router_lb_internal_security_group" {
  name        = "${var.env_id}-cf-router-lb-internal-security-group"
  description = "CF Router Internal"
  vpc_id      = aws_vpc.vpc.id

  ingress {
    protocol        = "tcp"
    from_port       = 80
    to_port         = 80
    security_groups = [aws_security_group.cf_router_lb_security_group.id]
  }

  egress {
    protocol    = "-1"
    from_port   = 0
    to_port     = 0
    cidr_blocks = ["0.0.0.0/0"]
  }
}

resource "aws_elb" "cf_router_lb" {
  name                      = "${substr(var.env_id, 0, 20)}-cf-router-lb"
  cross_zone_load_balancing = true
  subnets                   = aws_subnet.internal_subnets.*.id
  security_groups           = [aws_security_group.cf_router_lb_security_group.id]

  health_check {
    healthy_threshold   = 5
    unhealthy_threshold = 2
    interval            = 12
    target              = "tcp:80"
    timeout             = 2
  }

  listener {
    instance_port     = 80
    instance_protocol = "http"
    lb_port           = 80
    lb_protocol       = "http"
  }

  listener {
    instance_port      = 80
    instance_protocol  = "http"
    lb_port            = 443
    lb_protocol        = "https"
    ssl_certificate_id = aws_iam_server_certificate.lb_cert.arn
  }

  listener {
    instance_port      = 80
    instance_protocol  = "tcp"
    lb_port            = 4443
    lb_protocol        = "ssl"
    ssl_certificate_id = aws_iam_server_certificate.lb_cert.arn
  }
}

resource "aws_security_group" "cf_ssh_lb_security_group" {
  name        = "${var.env_id}-cf-ssh-lb-security-group"
  description = "CF SSH"
  vpc_id      = aws_vpc.vpc.id

  ingress {
    protocol    = "tcp"
    from_port   = 2222
    to_port     = 2222
    cidr_blocks = ["0.0.0.0/0"]
  }

  egress {
    protocol    = "-1"
    from_port   = 0
    to_port     = 0
    cidr_blocks = ["0.0.0.0/0"]
  }
}

resource "aws_security_group" "cf_ssh_lb_internal_security_group" {
  name        = "${var.env_id}-cf-ssh-lb-internal-security-group"
  description = "CF SSH Internal"
  vpc_id      = aws_vpc.vpc.id

  ingress {
    protocol        = "tcp"
    from_port       = 2222
    to_port         = 2222
    security_groups = [aws_security_group.cf_ssh_lb_security_group.id]
  }

  egress {
    protocol    = "-1"
    from_port   = 0
    to_port     = 0
    cidr_blocks = ["0.0.0.0/0"]
  }
}

resource "aws_elb" "cf_ssh_lb" {
  name                      = "${substr(var.env_id, 0, 20)}-cf-ssh-lb"
  cross_zone_load_balancing = true
  subnets                   = aws_subnet.internal_subnets.*.id
  security_groups           = [aws_security_group.cf_ssh_lb_security_group.id]

  health_check {
    healthy_threshold   = 5
    unhealthy_threshold = 2
    interval            = 6
    target              = "tcp:2222"
    timeout             = 2
  }

  listener {
    instance_port     = 2222
    instance_protocol = "tcp"
    lb_port           = 2222
    lb_protocol       = "tcp"
  }
}

output "cf_router_lb_name" {
  value = aws_elb.cf_router_lb.name
}

output "cf_router_lb_url" {
  value = aws_elb.cf_router_lb.dns_name
}

output "cf_router_lb_internal_security_group" {
  value = aws_security_group.cf_router_lb_internal_security_group.id
}

output "cf_ssh_lb_name" {
  value = aws_elb.cf_ssh_lb.name
}

output "cf_ssh_lb_url" {
  value = aws_elb.cf_ssh_lb.dns_name
}

output "cf_ssh_lb_internal_security_group" {
  value = aws_security_group.cf_ssh_lb_internal_security_group.id
}
"""

AZURE_BASE = """
variable "subscription_id" { type = string }
variable "tenant_id" { type = string }
variable "client_id" { type = string }
variable "client_secret" { type = string }
variable "region" { type = string }
variable "env_id" { type = string }
variable "storage_account_name" { type = string }
variable "network_cidr" {
  type    = string
  default = "10.0.0.0/16"
}
variable "internal_cidr" {
  type    = string
  default = "%(bosh_subnet_cidr)s"
}

provider "azurerm" {
  features {}
  subscription_id = var.subscription_id
  tenant_id       = var.tenant_id
  client_id       = var.client_id
  client_secret   = var.client_secret
}

resource "azurerm_resource_group" "bosh" {
  name     = "${var.env_id}-bosh"
  location = var.region
}

resource "azurerm_public_ip" "bosh" {
  name                = "${var.env_id}-bosh"
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name
  allocation_method   = "Static"
}

resource "azurerm_virtual_network" "bosh" {
  name                = "${var.env_id}-bosh-vn"
  address_space       = [var.network_cidr]
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name
}

resource "azurerm_subnet" "bosh" {
  name                 = "${var.env_id}-bosh-sn"
  address_prefixes     = [var.internal_cidr]
  resource_group_name  = azurerm_resource_group.bosh.name
  virtual_network_name = azurerm_virtual_network.bosh.name
}

resource "azurerm_network_security_group" "bosh" {
  name                = "${var.env_id}-bosh"
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name

  security_rule {
    name                       = "ssh"
    priority                   = 200
    direction                  = "Inbound"
    access                     = "Allow"
    protocol                   = "Tcp"
    source_port_range          = "*"
    destination_port_range     = "22"
    source_address_prefix      = "*"
    destination_address_prefix = "*"
  }

  security_rule {
    name                       = "bosh-agent"
    priority                   = 201
    direction                  = "Inbound"
    access                     = "Allow"
    protocol                   = "Tcp"
    source_port_range          = "*"
    destination_port_range     = "6868"
    source_address_prefix      = "*"
    destination_address_prefix = "*"
  }

  security_rule {
    name                       = "bosh-director"
    priority                   = 202
    direction                  = "Inbound"
    access                     = "Allow"
    protocol                   = "Tcp"
    source_port_range          = "*"
    destination_port_range     = "25555"
    source_address_prefix      = "*"
    destination_address_prefix = "*"
  }
}

resource "azurerm_storage_account" "bosh" {
  name                     = var.storage_account_name
  resource_group_name      = azurerm_resource_group.bosh.name
  location                 = var.region
  account_tier             = "Standard"
  account_replication_type = "GRS"
}

resource "azurerm_storage_container" "bosh" {
  name                  = "bosh"
  storage_account_name  = azurerm_storage_account.bosh.name
  container_access_type = "private"
}

resource "azurerm_storage_container" "stemcell" {
  name                  = "stemcell"
  storage_account_name  = azurerm_storage_account.bosh.name
  container_access_type = "blob"
}

output "external_ip" {
  value = azurerm_public_ip.bosh.ip_address
}

output "bosh_network_name" {
  value = azurerm_virtual_network.bosh.name
}

output "bosh_subnet_name" {
  value = azurerm_subnet.bosh.name
}

output "bosh_resource_group_name" {
  value = azurerm_resource_group.bosh.name
}

output "bosh_storage_account_name" {
  value = azurerm_storage_account.bosh.name
}

output "bosh_default_security_group" {
  value = azurerm_network_security_group.bosh.name
}
"""

AZURE_DIRECTOR_EXTERNAL = """
output "director_address" {
  value = "https://${azurerm_public_ip.bosh.ip_address}:25555"
}
"""

AZURE_JUMPBOX = """
resource "azurerm_public_ip" "jumpbox" {
  name                = "${var.env_id}-jumpbox"
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name
  allocation_method   = "Static"
}

output "jumpbox_url" {
  value = "${azurerm_public_ip.jumpbox.ip_address}:22"
}

output "director_address" {
  value = "https://%(director_ip)s:25555"
}
"""

SUBSTITUTIONS = {
  "bosh_subnet_cidr": BOSH_SUBNET_CIDR,
  "director_ip": DIRECTOR_INTERNAL_IP,
}


class TemplateGenerator:
  base = ""
  director_external = ""
  jumpbox = ""
  lbs: Dict[str, List[str]] = {}

  def generate(self, template_input: TemplateInput) -> str:
    fragments = [self.base]
    fragments.append(self.jumpbox if template_input.jumpbox else self.director_external)
    if template_input.lb_type:
      lb_fragments = self.lbs.get(template_input.lb_type)
      if lb_fragments is None:
        raise ValidationError(f"Load balancer type '{template_input.lb_type}' is not supported on this iaas.")
      fragments.extend(lb_fragments)
    return "".join(fragment % SUBSTITUTIONS if "%(" in fragment else fragment for fragment in fragments).lstrip()


class GCPTemplateGenerator(TemplateGenerator):
  base = GCP_BASE
  director_external = GCP_DIRECTOR_EXTERNAL
  jumpbox = GCP_JUMPBOX
  lbs = {
    "concourse": [GCP_CONCOURSE_LB],
    "cf": [GCP_CF_LB],
  }


class AWSTemplateGenerator(TemplateGenerator):
  base = AWS_BASE
  director_external = AWS_DIRECTOR_EXTERNAL
  jumpbox = AWS_JUMPBOX
  lbs = {
    "concourse": [AWS_LB_CERTIFICATE, AWS_CONCOURSE_LB],
    "cf": [AWS_LB_CERTIFICATE, AWS_CF_LB],
  }


class AzureTemplateGenerator(TemplateGenerator):
  base = AZURE_BASE
  director_external = AZURE_DIRECTOR_EXTERNAL
  jumpbox = AZURE_JUMPBOX
  lbs = {}
