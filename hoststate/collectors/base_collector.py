# hoststate/collectors/base_collector.py
"""
Result envelope and collector base classes.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any
import logging
from datetime import datetime


class CollectionResult:
    """Outcome of one collection request"""

    def __init__(self, success: bool, data: Any = None, error: str = None, metadata: Dict = None):
        self.success = success
        self.data = data
        self.error = error
        self.metadata = metadata or {}
        self.timestamp = datetime.now().isoformat()

    def to_dict(self) -> Dict:
        """Full result including diagnostics metadata"""
        return {
            'success': self.success,
            'data': self.data,
            'error': self.error,
            'metadata': self.metadata,
            'timestamp': self.timestamp
        }

    def envelope(self) -> Dict:
        """The {success, data, timestamp} shape returned to HTTP callers"""
        envelope = {
            'success': self.success,
            'data': self.data,
            'timestamp': self.timestamp
        }
        if self.error:
            envelope['error'] = self.error
        return envelope


class BaseCollector(ABC):
    """
    Abstract base class for host collectors.

    ``target`` describes the host being introspected: ``kind`` is 'local'
    or 'ssh', remote targets also carry host, port and username.
    """

    def __init__(self, name: str, target: Dict):
        self.name = name
        self.target = dict(target)
        self.target.setdefault('kind', 'local')
        self.logger = logging.getLogger(f"collector.{name}")

    @property
    def is_remote(self) -> bool:
        return self.target['kind'] == 'ssh'

    @property
    def target_label(self) -> str:
        if self.is_remote:
            return f"{self.target.get('username')}@{self.target.get('host')}:{self.target.get('port', 22)}"
        return 'local host'

    @abstractmethod
    def collect(self) -> CollectionResult:
        pass

    @abstractmethod
    def validate_config(self) -> bool:
        """Check the request can run before touching the target"""
        pass

    def log_collection_start(self):
        self.logger.info(f"Collecting host state from {self.target_label}")

    def log_collection_end(self, result: CollectionResult):
        if result.success:
            self.logger.info(f"Host state collected from {self.target_label}")
        else:
            self.logger.error(f"Collection from {self.target_label} failed: {result.error}")

    def handle_collection_error(self, error: Exception, context: str = "") -> CollectionResult:
        """Turn an unexpected exception into a failed result, with traceback in the log"""
        message = f"[{context}] {error}" if context else str(error)
        self.logger.exception(f"Collection failed: {message}")
        return CollectionResult(
            success=False,
            error=message,
            metadata=self.create_metadata({'error_context': context})
        )

    def create_metadata(self, additional_metadata: Dict = None) -> Dict:
        metadata = {
            'collector': self.name,
            'target': dict(self.target),
            'collected_at': datetime.now().isoformat()
        }
        if additional_metadata:
            metadata.update(additional_metadata)
        return metadata


class SystemStateCollector(BaseCollector):
    """
    Collector whose data is a mapping of fact family to snapshot.
    """

    @abstractmethod
    def get_system_state(self) -> Dict[str, Any]:
        pass

    def collect(self) -> CollectionResult:
        try:
            self.log_collection_start()

            if not self.validate_config():
                return CollectionResult(
                    False,
                    error="Invalid configuration",
                    metadata=self.create_metadata()
                )

            state = self.get_system_state()
            result = CollectionResult(
                success=True,
                data=state,
                metadata=self.create_metadata({'families': list(state)})
            )

            self.log_collection_end(result)
            return result

        except Exception as e:
            return self.handle_collection_error(e, "host state collection")
