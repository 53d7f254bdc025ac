import json

import pytest

from cluster.backend import GraphService

from graph_fakes import Recorder, SAMPLE_GRAPH, fake_embed, fake_reply


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def service(tmp_path):
    return GraphService(embed=fake_embed, reply=fake_reply, layout_delay=None, storage_dir=tmp_path)


@pytest.fixture
def seeded_service(service):
    service.import_graph(json.dumps(SAMPLE_GRAPH))
    return service
