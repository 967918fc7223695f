"""jobqueue - 문서/팟캐스트 백그라운드 잡 큐"""

__version__ = "1.0.0"
