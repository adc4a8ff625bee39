import httpx


def image_response(size=50_000, content_type="image/jpeg", fill=b"\xff"):
    return httpx.Response(200, content=fill * size, headers={"content-type": content_type})


def mock_client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))
