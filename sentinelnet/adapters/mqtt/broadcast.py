import asyncio
import json
import ssl
from typing import AsyncIterator, Dict
from aiomqtt import Client, MqttError, Will

from sentinelnet.observability.logging_setup import get_logger
log = get_logger("sentinelnet.broadcast")

class MqttAlertBroadcast:
    """MQTT 경보 브로드캐스트 수신 어댑터"""

    def __init__(
        self,
        host: str,
        port: int,
        topic: str,
        *,
        username: str | None = None,
        password: str | None = None,
        tls: bool = False,
        client_id: str | None = None,
        keepalive: int = 30,
        qos: int = 1,
        reconnect_delay_sec: float = 5.0,
        lwt_topic: str = "sentinelnet/client/state",
        lwt_payload: str = "offline",
    ):
        self.host = host
        self.port = port
        self.topic = topic
        self.username = username
        self.password = password
        self.tls = tls
        self.client_id = client_id
        self.keepalive = keepalive
        self.qos = qos
        self.reconnect_delay_sec = reconnect_delay_sec
        self.lwt_topic = lwt_topic
        self.lwt_payload = lwt_payload

        self._running = False

    def _client(self) -> Client:
        # TLS 컨텍스트 준비 (필요 시)
        tls_context = ssl.create_default_context() if self.tls else None

        will = Will(
            topic=self.lwt_topic,
            payload=self.lwt_payload.encode("utf-8"),
            qos=1,
            retain=True,
        )

        return Client(
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            identifier=self.client_id,
            keepalive=self.keepalive,
            tls_context=tls_context,
            will=will,
        )

    async def recv(self) -> AsyncIterator[Dict]:
        """브로커에 연결해 경보 페이로드를 하나씩 내보냅니다. 끊기면 재연결합니다."""
        self._running = True
        while self._running:
            try:
                async with self._client() as client:
                    await client.subscribe(self.topic, qos=self.qos)
                    log.info(f"경보 토픽 구독됨: {self.topic}")
                    async for message in client.messages:
                        if not self._running:
                            break
                        try:
                            payload = json.loads(message.payload.decode("utf-8"))
                        except (json.JSONDecodeError, UnicodeDecodeError) as e:
                            log.error(f"경보 페이로드 파싱 오류: {e}")
                            continue
                        if isinstance(payload, dict):
                            yield payload
                        else:
                            log.warning("딕셔너리가 아닌 경보 페이로드 무시됨")
            except MqttError as e:
                log.error(f"MQTT 오류: {e}")
                if self._running:
                    await asyncio.sleep(self.reconnect_delay_sec)

    async def stop(self) -> None:
        self._running = False
        log.info("경보 브로드캐스트 수신 중지됨")
