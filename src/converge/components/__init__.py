"""Built-in component types; importing this package registers them."""

from .aws_iam_role import AwsIamRole as AwsIamRole
from .policy import PolicyArn as PolicyArn
from .policy import PolicyComponent as PolicyComponent
