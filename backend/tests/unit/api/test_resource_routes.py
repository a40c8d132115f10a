"""Tests for /api/images, /api/volumes and /api/networks routes"""

import pytest

from engine.errors import EngineError, ResourceNotFound


@pytest.fixture
def client(make_client, fake_engine):
    return make_client(fake_engine)


class TestImageRoutes:

    def test_list_images(self, client, fake_engine):
        fake_engine.responses['list_images'] = [{'Id': 'sha256:abc', 'RepoTags': ['nginx:latest']}]

        response = client.get("/api/images", params={"all": "true", "filters": '{"dangling": ["true"]}'})

        assert response.json()["data"][0]['RepoTags'] == ['nginx:latest']
        assert fake_engine.calls_to('list_images') == [((), {'all': True, 'filters': {"dangling": ["true"]}})]

    def test_inspect_image_with_repository_path(self, client, fake_engine):
        response = client.get("/api/images/library/nginx:latest")

        assert response.status_code == 200
        assert fake_engine.calls_to('inspect_image') == [(("library/nginx:latest",), {})]

    def test_pull_without_tag(self, client, fake_engine):
        response = client.post("/api/images/pull", json={"repoTag": "alpine:3.19"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Image alpine:3.19 pulled successfully"
        assert body["data"] == {'status': 'Downloaded newer image for alpine:3.19'}

    def test_pull_with_auth(self, client, fake_engine):
        auth = {"username": "bot", "password": "secret"}

        client.post("/api/images/pull", json={"repoTag": "registry.local/app", "tag": "2", "authconfig": auth})

        assert fake_engine.calls_to('pull_image') == [
            (("registry.local/app",), {'tag': '2', 'auth_config': auth})
        ]

    def test_pull_requires_repo_tag(self, client, fake_engine):
        response = client.post("/api/images/pull", json={"tag": "latest"})

        assert response.status_code == 400
        assert not fake_engine.called('pull_image')

    def test_pull_failure(self, client, fake_engine):
        fake_engine.errors['pull_image'] = EngineError("Failed to pull nope: manifest unknown")

        response = client.post("/api/images/pull", json={"repoTag": "nope"})

        assert response.status_code == 500
        assert response.json()["error"] == "upstream_unavailable"

    def test_remove_image(self, client, fake_engine):
        response = client.delete("/api/images/sha256:abc", params={"force": "true", "noprune": "true"})

        assert response.status_code == 200
        assert fake_engine.calls_to('remove_image') == [(("sha256:abc",), {'force': True, 'noprune': True})]

    def test_remove_missing_image(self, client, fake_engine):
        fake_engine.errors['remove_image'] = ResourceNotFound("No such image: ghost:latest")

        response = client.delete("/api/images/ghost:latest")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_prune_images(self, client, fake_engine):
        fake_engine.responses['prune_images'] = {
            'ImagesDeleted': [{'Untagged': 'old:1'}, {'Deleted': 'sha256:1'}],
            'SpaceReclaimed': 2048,
        }

        response = client.post("/api/images/prune")

        assert response.json()["data"]["SpaceReclaimed"] == 2048


class TestVolumeRoutes:

    def test_create_volume_defaults(self, client, fake_engine):
        response = client.post("/api/volumes", json={"Name": "data", "Labels": {"app": "db"}})

        assert response.status_code == 200
        assert response.json()["message"] == "Volume created successfully"
        assert fake_engine.calls_to('create_volume') == [
            ((), {'name': 'data', 'driver': 'local', 'driver_opts': None, 'labels': {"app": "db"}})
        ]

    def test_list_volumes(self, client, fake_engine):
        response = client.get("/api/volumes")

        assert response.json()["data"] == {'Volumes': [], 'Warnings': None}

    def test_inspect_missing_volume(self, client, fake_engine):
        fake_engine.errors['inspect_volume'] = ResourceNotFound("get nope: no such volume")

        assert client.get("/api/volumes/nope").status_code == 404

    def test_remove_volume(self, client, fake_engine):
        response = client.delete("/api/volumes/data", params={"force": "true"})

        assert response.json()["message"] == "Volume data removed successfully"
        assert fake_engine.calls_to('remove_volume') == [(("data",), {'force': True})]


class TestNetworkRoutes:

    def test_create_network(self, client, fake_engine):
        response = client.post("/api/networks", json={
            "Name": "backend",
            "Internal": True,
            "IPAM": {"Config": [{"Subnet": "172.30.0.0/16"}]},
        })

        assert response.status_code == 200
        assert fake_engine.calls_to('create_network') == [(("backend",), {
            'driver': 'bridge',
            'options': None,
            'ipam': {"Config": [{"Subnet": "172.30.0.0/16"}]},
            'labels': None,
            'internal': True,
            'attachable': False,
        })]

    def test_create_network_requires_name(self, client, fake_engine):
        response = client.post("/api/networks", json={"Driver": "bridge"})

        assert response.status_code == 400
        assert not fake_engine.called('create_network')

    def test_connect_and_disconnect(self, client, fake_engine):
        client.post("/api/networks/net1/connect", json={"Container": "c1", "EndpointConfig": {"Aliases": ["web"]}})
        client.post("/api/networks/net1/disconnect", json={"Container": "c1", "Force": True})

        assert fake_engine.calls_to('connect_network') == [
            (("net1", "c1"), {'endpoint_config': {"Aliases": ["web"]}})
        ]
        assert fake_engine.calls_to('disconnect_network') == [(("net1", "c1"), {'force': True})]

    def test_remove_network(self, client, fake_engine):
        response = client.delete("/api/networks/net1")

        assert response.json() == {"success": True, "message": "Network net1 removed successfully"}

    def test_prune_networks(self, client, fake_engine):
        fake_engine.responses['prune_networks'] = {'NetworksDeleted': ['old']}

        response = client.post("/api/networks/prune")

        assert response.json()["data"] == {'NetworksDeleted': ['old']}
