"""
AWS Signature Version 4 signing for Amazon OpenSearch Service requests.
Credentials are resolved per request from the ambient boto3 credential chain
(environment variables, Lambda execution role, shared config).
"""

import logging
import re
from typing import Dict, Optional

import boto3
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest

logger = logging.getLogger(__name__)

# <domain>.<region>.<service>.amazonaws.com
AWS_ENDPOINT_PATTERN = re.compile(r"^([^.]+)\.?([^.]*)\.?([^.]*)\.amazonaws\.com$")


class RequestSigningError(Exception):
    """Raised when a request cannot be signed"""

    pass


def region_from_endpoint(endpoint: str) -> str:
    host = endpoint.split(":", 1)[0]
    match = AWS_ENDPOINT_PATTERN.match(host)
    if not match or not match.group(2):
        raise ValueError(
            f"Cannot derive AWS region from endpoint {endpoint!r}; set AWS_REGION"
        )
    return match.group(2)


class SigV4RequestSigner:
    def __init__(
        self,
        region: str,
        service: str = "es",
        session: Optional[boto3.Session] = None,
    ):
        self.region = region
        self.service = service
        self.session = session or boto3.Session()

    def sign(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: bytes = b"",
    ) -> Dict[str, str]:
        """Return ``headers`` plus the SigV4 authorization headers for the request."""
        credentials = self.session.get_credentials()
        if credentials is None:
            raise RequestSigningError("No AWS credentials found in the environment")

        request = AWSRequest(method=method, url=url, data=body, headers=dict(headers))
        SigV4Auth(credentials.get_frozen_credentials(), self.service, self.region).add_auth(
            request
        )
        logger.debug(f"Signed {method} {url} for {self.service}/{self.region}")
        return dict(request.headers.items())
