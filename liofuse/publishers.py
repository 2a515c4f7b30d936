"""
Outbound side of the front end. The transport is left to the host, which
implements ``Publisher``.
"""

from abc import ABC, abstractmethod
from typing import Dict, List

from liofuse.lib.messages import Odometry, PointCloud


class Publisher(ABC):
    """
    Receives the odometry and feature clouds produced for each consumed scan,
    already expressed in the downstream axis convention.
    """

    @abstractmethod
    def publish_odometry(self, odometry: Odometry):
        pass

    @abstractmethod
    def publish_cloud(self, topic: str, cloud: PointCloud):
        pass


class ListPublisher(Publisher):
    """
    Publisher that records everything it is given, for offline runs and tests.
    """

    def __init__(self):
        self.odometry: List[Odometry] = []
        self.clouds: Dict[str, List[PointCloud]] = {}

    def publish_odometry(self, odometry: Odometry):
        self.odometry.append(odometry)

    def publish_cloud(self, topic: str, cloud: PointCloud):
        self.clouds.setdefault(topic, []).append(cloud)

    def clear(self):
        self.odometry = []
        self.clouds = {}

    def __repr__(self):
        return (
            f"ListPublisher(odometry={len(self.odometry)}, "
            f"topics={sorted(self.clouds.keys())})"
        )
