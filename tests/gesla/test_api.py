"""Tests for the convenience loading functions."""

import numpy as np
import pytest

from gesla import api
from gesla.exceptions import AmbiguousSelectionError, NotFoundError
from gesla.resolver import preselected


@pytest.fixture
def gesla_files(write_station):
    for name in (
        'aberdeen-abe-gbr-bodc',
        'aberdeen_harbour-abh-gbr-cmems',
        'lerwick-ler-gbr-bodc',
        'brest-822a-fra-uhslc',
        'tokyo-tky-jpn-jma',
    ):
        write_station(name)


class TestLoadFile:
    """Test suite for api.load_file."""

    def test_flag_options(self, data_dir, gesla_files):
        results = api.load_file(
            'aberdeen-abe-gbr-bodc',
            data_dir,
            gesla_removal='y',
            contributor_removal=[2]
        )
        record = results['aberdeen_abe_gbr_bodc']
        assert np.flatnonzero(np.isnan(record.sea_level)).tolist() == [2, 3, 4]

    def test_loader_options_passed_through(self, data_dir, gesla_files):
        results = api.load_file(['missing-xxx-xxx-xxx'], data_dir, on_error='collect')
        assert len(results) == 0
        assert list(results.failures) == ['missing-xxx-xxx-xxx']


class TestSelectionLoaders:
    """Test suite for the catalog-driven loaders."""

    def test_site_to_file(self, catalog_file):
        assert api.site_to_file('Brest', catalog_file) == ['brest-822a-fra-uhslc']

    def test_site_to_file_ambiguous(self, catalog_file):
        with pytest.raises(AmbiguousSelectionError):
            api.site_to_file('Aberdeen', catalog_file)

    def test_load_site_with_chooser(self, data_dir, catalog_file, gesla_files):
        results = api.load_site(
            'Aberdeen',
            data_dir,
            catalog_file,
            chooser=preselected(['aberdeen_harbour-abh-gbr-cmems'])
        )
        assert list(results) == ['aberdeen_harbour_abh_gbr_cmems']

    def test_load_bbox(self, data_dir, catalog, gesla_files):
        results = api.load_bbox([50, 40, -10, 0], data_dir, catalog)
        assert list(results) == ['brest_822a_fra_uhslc']

    def test_load_bbox_empty(self, data_dir, catalog):
        assert len(api.load_bbox([-60, -70, 0, 10], data_dir, catalog)) == 0

    def test_load_nearest(self, data_dir, catalog, gesla_files):
        results = api.load_nearest((139.0, 35.0), 1, data_dir, catalog)
        assert list(results) == ['tokyo_tky_jpn_jma']

    def test_load_country(self, data_dir, catalog_file, gesla_files):
        results = api.load_country('GBR', data_dir, catalog_file, max_workers=2)
        assert list(results) == [
            'aberdeen_abe_gbr_bodc',
            'aberdeen_harbour_abh_gbr_cmems',
            'lerwick_ler_gbr_bodc',
        ]

    def test_load_country_not_found(self, data_dir, catalog):
        with pytest.raises(NotFoundError):
            api.load_country('ZZZ', data_dir, catalog)

    def test_change_field_names(self, data_dir, catalog_file, gesla_files):
        results = api.load_country(['FRA', 'JPN'], data_dir, catalog_file)
        renamed = api.change_field_names(results, catalog_file, fields=['site', 'code'])
        assert list(renamed) == ['Brest_822a', 'Tokyo_tky']
