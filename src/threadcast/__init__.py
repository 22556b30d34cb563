"""threadcast - 코딩 어시스턴트 이벤트 스트림을 채팅 스레드로 렌더링"""

__version__ = "0.1.0"
