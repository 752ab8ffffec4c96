import json

import pytest

from udelawhere.services.games.coordinates import generate_locations, parse_coordinates
from conftest import build_app


@pytest.mark.parametrize('text,expected', [
    ('39.68010N, 75.75369W', (39.6801, -75.75369)),
    ('39.68010N,75.75369W', (39.6801, -75.75369)),
    ('33.8688S, 151.2093E', (-33.8688, 151.2093)),
    ('  39.1N,  75.2W\n', (39.1, -75.2)),
])
def test_parse_coordinates(text, expected):
    assert parse_coordinates(text) == pytest.approx(expected)


@pytest.mark.parametrize('text', ['', '39.68 75.75', '39N, 75W', 'north, west'])
def test_parse_coordinates_rejects_malformed(text):
    assert parse_coordinates(text) is None


def _make_asset(assets, locations, name, coords=None, image=None, cubemap=True):
    folder = assets / name
    folder.mkdir()
    if coords is not None:
        (folder / 'cords.txt').write_text(coords)
    if image:
        (folder / image).write_bytes(b'\xff\xd8')
    if cubemap:
        (locations / name).mkdir()


@pytest.fixture()
def asset_tree(tmp_path):
    assets = tmp_path / 'assets'
    locations = tmp_path / 'locations'
    assets.mkdir()
    locations.mkdir()
    _make_asset(assets, locations, 'img10', '39.68394N, 75.74512W', 'ISE Lab.jpg')
    _make_asset(assets, locations, 'img2', '39.68327N, 75.75436W', 'Old College.png')
    _make_asset(assets, locations, 'img3', 'somewhere on campus', 'Lost.jpg')
    _make_asset(assets, locations, 'img4', None, 'NoCoords.jpg')
    _make_asset(assets, locations, 'img5', '39.6801N, 75.75369W', 'NoCubemap.jpg', cubemap=False)
    _make_asset(assets, locations, 'img6', '39.67858N, 75.75206W')
    (assets / 'readme.txt').write_text('not a folder')
    return assets, locations


def test_generate_locations_skips_incomplete_folders(asset_tree):
    assets, locations = asset_tree
    result = generate_locations(str(assets), str(locations))
    assert [loc['id'] for loc in result] == ['img2', 'img6', 'img10']
    assert result[0] == {
        'id': 'img2',
        'image': '/locations/img2/',
        'coordinates': [39.68327, -75.75436],
        'name': 'Old College',
    }
    assert result[1]['name'] == 'img6'


def test_generate_locations_cli(asset_tree, tmp_path):
    assets, locations = asset_tree
    output = tmp_path / 'out.json'
    app = build_app()
    runner = app.test_cli_runner()
    res = runner.invoke(args=['generate-locations', str(assets), str(locations), '-o', str(output)])
    assert res.exit_code == 0, res.output
    assert 'Generated 3 locations' in res.output
    data = json.loads(output.read_text())
    assert [loc['id'] for loc in data] == ['img2', 'img6', 'img10']
