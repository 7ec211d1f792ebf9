"""Kubernetes API client construction."""

import structlog
from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

logger = structlog.get_logger()


def new_core_api(kubeconfig: str | None = None) -> client.CoreV1Api:
    """Build a CoreV1Api, preferring in-cluster credentials over a kubeconfig file.

    Raises:
        ConfigException: If neither in-cluster nor kubeconfig credentials load
    """
    if kubeconfig:
        config.load_kube_config(config_file=kubeconfig)
        logger.info("Loaded kubeconfig", path=kubeconfig)
        return client.CoreV1Api()
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except ConfigException:
        config.load_kube_config()
        logger.info("Loaded default kubeconfig")
    return client.CoreV1Api()
