"""Cloud providers."""

from .aws import AwsProvider as AwsProvider
from .base import IamProvider as IamProvider
from .base import RoleSpec as RoleSpec
