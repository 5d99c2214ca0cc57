import pytest

from helmactions.errors import ActionLookupError, CredentialError, StateUpdateError
from helmactions.services.management_api import ManagementApiClient


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


class FakeResponse:
    def __init__(self, status_code=200, payload=None, error=None):
        self.status_code = status_code
        self.payload = payload
        self.error = error

    def raise_for_status(self):
        if self.error:
            raise self.error

    def json(self):
        return self.payload


class FakeRequestsModule:
    class RequestException(Exception):
        pass

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.responses.pop(0)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def put(self, url, **kwargs):
        return self._next("PUT", url, **kwargs)


def _client(requests_module):
    return ManagementApiClient(
        server_url="https://rancher.example.com/",
        token="token-abc",
        project_id="c-abc12:p-xyz34",
        logger=DummyLogger(),
        requests_module=requests_module,
    )


APP_PAYLOAD = {
    "id": "p-xyz34:wordpress",
    "name": "wordpress",
    "projectId": "c-abc12:p-xyz34",
    "targetNamespace": "wordpress-ns",
    "externalId": "catalog://?catalog=library&template=wordpress&version=1.0.5",
}


def test_get_app_maps_api_payload():
    requests_module = FakeRequestsModule([FakeResponse(payload=APP_PAYLOAD)])

    app = _client(requests_module).get_app("p-xyz34:wordpress")

    method, url, kwargs = requests_module.calls[0]
    assert method == "GET"
    assert url == "https://rancher.example.com/v3/project/c-abc12:p-xyz34/apps/p-xyz34:wordpress"
    assert kwargs["headers"]["Authorization"] == "Bearer token-abc"
    assert app.cluster_id == "c-abc12"
    assert app.install_namespace == "wordpress-ns"


def test_get_cluster_returns_none_on_404():
    requests_module = FakeRequestsModule([FakeResponse(status_code=404)])

    assert _client(requests_module).get_cluster("c-missing") is None


def test_lookup_request_errors_become_lookup_errors():
    requests_module = FakeRequestsModule(
        [FakeResponse(status_code=500, error=FakeRequestsModule.RequestException("server error"))]
    )

    with pytest.raises(ActionLookupError, match="server error"):
        _client(requests_module).get_template_version("library-wordpress-1.0.5")


def test_get_template_version_returns_chart_bundle():
    requests_module = FakeRequestsModule(
        [FakeResponse(payload={"id": "library-wordpress-1.0.5", "files": {"wordpress/Chart.yaml": "name: wp"}})]
    )

    bundle = _client(requests_module).get_template_version("library-wordpress-1.0.5")

    assert bundle.version_id == "library-wordpress-1.0.5"
    assert bundle.files == {"wordpress/Chart.yaml": "name: wp"}


def test_kube_config_uses_caller_token_and_parses_yaml():
    config = "apiVersion: v1\nclusters:\n- name: c-abc12\n  cluster:\n    server: https://x\n"
    requests_module = FakeRequestsModule([FakeResponse(payload={"config": config})])

    parsed = _client(requests_module).kube_config("c-abc12", "caller-token")

    method, url, kwargs = requests_module.calls[0]
    assert method == "POST"
    assert kwargs["params"] == {"action": "generateKubeconfig"}
    assert kwargs["headers"]["Authorization"] == "Bearer caller-token"
    assert parsed["clusters"][0]["cluster"]["server"] == "https://x"


def test_kube_config_rejects_empty_payload():
    requests_module = FakeRequestsModule([FakeResponse(payload={})])

    with pytest.raises(CredentialError, match="empty"):
        _client(requests_module).kube_config("c-abc12")


def test_update_app_sends_json_body():
    requests_module = FakeRequestsModule([FakeResponse(payload=APP_PAYLOAD)])

    app = _client(requests_module).update_app("p-xyz34:wordpress", {"name": "p-xyz34:wordpress"})

    method, url, kwargs = requests_module.calls[0]
    assert url == "https://rancher.example.com/v3/project/c-abc12:p-xyz34/apps/p-xyz34:wordpress"
    assert method == "PUT"
    assert kwargs["json"] == {"name": "p-xyz34:wordpress"}
    assert app.name == "wordpress"


def test_update_app_failure_becomes_state_update_error():
    requests_module = FakeRequestsModule(
        [FakeResponse(status_code=409, error=FakeRequestsModule.RequestException("conflict"))]
    )

    with pytest.raises(StateUpdateError, match="conflict"):
        _client(requests_module).update_app("p-xyz34:wordpress", {"externalId": "x"})
