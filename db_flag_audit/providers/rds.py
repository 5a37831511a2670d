"""Inventory provider backed by Amazon RDS DB parameter groups."""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError

from ..exceptions import ProviderUnavailable
from ..findings import FlagSetting, InstanceDetail
from ..utils import safe_paginate

logger = logging.getLogger(__name__)

DEFAULT_GROUP_PREFIX = "default."

_BOTO_ERRORS = (ClientError, EndpointConnectionError, NoCredentialsError)


class RdsInventoryProvider:
    """Read RDS instances and their user-set parameters.

    The fleet identity is the AWS region to query. An instance whose parameter
    groups are all ``default.*`` groups has never been configured and reports
    no flag collection. Aurora instances also read the user-set parameters of
    their cluster parameter group; instance-level values take precedence.
    """

    platform = "rds"

    def __init__(self, session: boto3.session.Session) -> None:
        self._session = session
        self._clients: Dict[str, boto3.client] = {}
        self._clients_lock = threading.Lock()

    def _client(self, fleet: str) -> boto3.client:
        # boto3 sessions are not thread-safe; clients are.
        with self._clients_lock:
            client = self._clients.get(fleet)
            if client is None:
                client = self._session.client("rds", region_name=fleet or None)
                self._clients[fleet] = client
        return client

    def fetch_instance_identifiers(self, fleet: str) -> List[str]:
        rds = self._client(fleet)
        try:
            return [
                db["DBInstanceIdentifier"]
                for db in safe_paginate(rds, "describe_db_instances", "DBInstances")
            ]
        except _BOTO_ERRORS as exc:
            raise ProviderUnavailable("Failed to describe RDS instances", exc) from exc

    def fetch_instance_detail(self, fleet: str, identifier: str) -> InstanceDetail:
        rds = self._client(fleet)
        try:
            response = rds.describe_db_instances(DBInstanceIdentifier=identifier)
        except _BOTO_ERRORS as exc:
            raise ProviderUnavailable(
                f"Failed to describe RDS instance {identifier}", exc
            ) from exc

        instances = response.get("DBInstances", [])
        if not instances:
            raise ProviderUnavailable(f"RDS returned no description for {identifier}")
        db = instances[0]

        group_names = [
            group["DBParameterGroupName"]
            for group in db.get("DBParameterGroups", [])
            if group.get("DBParameterGroupName")
        ]
        flags = self._user_parameters(
            rds, "describe_db_parameters", "DBParameterGroupName", group_names
        )
        cluster_id = db.get("DBClusterIdentifier")
        if cluster_id:
            cluster_flags = self._user_parameters(
                rds,
                "describe_db_cluster_parameters",
                "DBClusterParameterGroupName",
                self._cluster_group_names(rds, cluster_id),
            )
            flags = _merge_cluster_flags(flags, cluster_flags)
        return InstanceDetail.build(
            identifier=identifier,
            engine_kind=db.get("Engine", ""),
            engine_version=db.get("EngineVersion"),
            flags=flags,
        )

    def _cluster_group_names(self, rds: boto3.client, cluster_id: str) -> List[str]:
        try:
            response = rds.describe_db_clusters(DBClusterIdentifier=cluster_id)
        except _BOTO_ERRORS as exc:
            raise ProviderUnavailable(f"Failed to describe DB cluster {cluster_id}", exc) from exc
        return [
            cluster["DBClusterParameterGroup"]
            for cluster in response.get("DBClusters", [])
            if cluster.get("DBClusterParameterGroup")
        ]

    def _user_parameters(
        self,
        rds: boto3.client,
        method_name: str,
        group_key: str,
        group_names: List[str],
    ) -> Optional[List[FlagSetting]]:
        """Return user-set parameters across custom groups, or ``None``."""

        custom_groups = [
            name for name in group_names if not name.startswith(DEFAULT_GROUP_PREFIX)
        ]
        if not custom_groups:
            return None

        flags: List[FlagSetting] = []
        for group_name in custom_groups:
            logger.debug("Reading parameters of parameter group %s", group_name)
            try:
                for parameter in safe_paginate(
                    rds,
                    method_name,
                    "Parameters",
                    Source="user",
                    **{group_key: group_name},
                ):
                    if "ParameterValue" not in parameter:
                        continue
                    flags.append(
                        FlagSetting(
                            name=parameter["ParameterName"],
                            value=str(parameter["ParameterValue"]),
                        )
                    )
            except _BOTO_ERRORS as exc:
                raise ProviderUnavailable(
                    f"Failed to describe parameter group {group_name}", exc
                ) from exc
        return flags


def _merge_cluster_flags(
    instance_flags: Optional[List[FlagSetting]],
    cluster_flags: Optional[List[FlagSetting]],
) -> Optional[List[FlagSetting]]:
    """Combine instance and cluster parameters; instance values take precedence."""

    if cluster_flags is None:
        return instance_flags
    if instance_flags is None:
        return cluster_flags
    instance_names = {flag.name for flag in instance_flags}
    return instance_flags + [flag for flag in cluster_flags if flag.name not in instance_names]


__all__ = ["DEFAULT_GROUP_PREFIX", "RdsInventoryProvider"]
