import json
import logging

import httpx

from stickerpipe.core.errors import TransportError
from stickerpipe.core.models import MatrixConfig, Mxc
from stickerpipe.utils.url_masking import mask_url

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/_matrix/media/v3/upload"


class MatrixMediaUploader:
    """通过 Matrix 媒体仓库接口上传文件。"""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        # 测试时注入 httpx.MockTransport
        self._transport = transport

    async def upload(
        self,
        config: MatrixConfig,
        file_name: str,
        data: bytes,
        mime_type: str,
    ) -> Mxc:
        url = f"{config.homeserver_url.rstrip('/')}{UPLOAD_PATH}"
        logger.debug(
            "准备上传到 Matrix: server=%s file=%s mime=%s size=%s",
            mask_url(config.homeserver_url),
            file_name,
            mime_type,
            len(data),
        )
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    url,
                    params={"filename": file_name},
                    headers={
                        "Authorization": f"Bearer {config.access_token}",
                        "Content-Type": mime_type,
                    },
                    content=data,
                )
        except httpx.HTTPError as exc:
            raise TransportError(f"上传 Matrix 媒体失败: {exc}") from exc

        try:
            payload = response.json()
        except json.JSONDecodeError:
            payload = {"raw_body": response.text}

        if response.status_code != 200:
            raise TransportError(
                "上传 Matrix 媒体失败: " f"status={response.status_code} payload={payload}"
            )

        content_uri = payload.get("content_uri") if isinstance(payload, dict) else None
        if not content_uri or not str(content_uri).startswith("mxc://"):
            raise TransportError(f"Matrix 返回的 content_uri 不合法: {payload}")

        logger.debug("Matrix 媒体上传成功: file=%s mxc=%s", file_name, content_uri)
        return Mxc(str(content_uri))
