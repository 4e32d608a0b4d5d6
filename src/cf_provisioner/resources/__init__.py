"""Cloudflare resource definitions."""

from cf_provisioner.resources.access import AccessApplicationResource, AccessPolicyResource
from cf_provisioner.resources.base import Resource
from cf_provisioner.resources.database import DatabaseResource
from cf_provisioner.resources.dns import DNSRecordResource
from cf_provisioner.resources.pages import CustomDomainResource, PagesProjectResource
from cf_provisioner.resources.storage import BucketResource

__all__ = [
    "AccessApplicationResource",
    "AccessPolicyResource",
    "BucketResource",
    "CustomDomainResource",
    "DNSRecordResource",
    "DatabaseResource",
    "PagesProjectResource",
    "Resource",
]
