# This file is part of nvmeraid. See LICENSE for copyright and license info.

import json
import os

from nvmeraid import config
from nvmeraid import util
from nvmeraid.block import nvme
from .helpers import CiTestCase

NVME_LIST_V1 = {
    "Devices": [
        {"NameSpace": 1, "DevicePath": "/dev/nvme0n1",
         "ModelNumber": "Amazon Elastic Block Store",
         "SerialNumber": "vol0123456789abcdef0"},
        {"NameSpace": 1, "DevicePath": "/dev/nvme2n1",
         "ModelNumber": "Amazon EC2 NVMe Instance Storage",
         "SerialNumber": "AWS22A2B8E3A4F5E9C1"},
        {"NameSpace": 1, "DevicePath": "/dev/nvme1n1",
         "ModelNumber": "Amazon EC2 NVMe Instance Storage",
         "SerialNumber": "AWS11A2B8E3A4F5E9C1"},
    ]
}

NVME_LIST_V2 = {
    "Devices": [
        {"HostNQN": "nqn.2014-08.org.nvmexpress:uuid:ec2",
         "Subsystems": [
             {"Subsystem": "nvme-subsys1",
              "Controllers": [
                  {"Controller": "nvme1",
                   "SerialNumber": "AWS11A2B8E3A4F5E9C1",
                   "ModelNumber": "Amazon EC2 NVMe Instance Storage",
                   "Namespaces": [{"NameSpace": "nvme1n1", "NSID": 1}]}]},
             {"Subsystem": "nvme-subsys0",
              "Controllers": [
                  {"Controller": "nvme0",
                   "SerialNumber": "vol0123456789abcdef0",
                   "ModelNumber": "Amazon Elastic Block Store",
                   "Namespaces": [{"NameSpace": "nvme0n1", "NSID": 1}]}]},
         ]}
    ]
}


class TestParseNvmeList(CiTestCase):

    def test_v1_layout(self):
        devices = nvme.parse_nvme_list(json.dumps(NVME_LIST_V1))
        self.assertEqual(['/dev/nvme0n1', '/dev/nvme2n1', '/dev/nvme1n1'],
                         [d.path for d in devices])
        self.assertEqual('AWS22A2B8E3A4F5E9C1', devices[1].serial)

    def test_v2_layout(self):
        devices = nvme.parse_nvme_list(json.dumps(NVME_LIST_V2))
        self.assertEqual(
            [nvme.NvmeDevice('/dev/nvme1n1',
                             'Amazon EC2 NVMe Instance Storage',
                             'AWS11A2B8E3A4F5E9C1'),
             nvme.NvmeDevice('/dev/nvme0n1', 'Amazon Elastic Block Store',
                             'vol0123456789abcdef0')],
            devices)

    def test_empty_output(self):
        self.assertEqual([], nvme.parse_nvme_list(''))
        self.assertEqual([], nvme.parse_nvme_list('{"Devices": []}'))

    def test_invalid_output(self):
        self.assertRaises(ValueError, nvme.parse_nvme_list, 'Node  SN  Model')
        self.assertRaises(ValueError, nvme.parse_nvme_list, '[1, 2]')


class TestNvmeListCandidates(CiTestCase):

    def setUp(self):
        super(TestNvmeListCandidates, self).setUp()
        self.add_patch('nvmeraid.block.nvme.util.subp', 'm_subp')

    def test_model_filter(self):
        self.m_subp.return_value = (json.dumps(NVME_LIST_V1), '')
        self.assertEqual(
            ['/dev/nvme2n1', '/dev/nvme1n1'],
            nvme.nvme_list_candidates(config.DEFAULT_NVME_MODEL))
        self.m_subp.assert_called_with(['nvme', 'list', '-o', 'json'],
                                       capture=True)

    def test_command_failure_is_empty(self):
        self.m_subp.side_effect = util.ProcessExecutionError(exit_code=1)
        with self.assertLogs('nvmeraid', level='WARNING'):
            self.assertEqual(
                [], nvme.nvme_list_candidates(config.DEFAULT_NVME_MODEL))

    def test_bad_output_is_empty(self):
        self.m_subp.return_value = ('not json', '')
        self.assertEqual(
            [], nvme.nvme_list_candidates(config.DEFAULT_NVME_MODEL))


class TestByIdCandidates(CiTestCase):

    def setUp(self):
        super(TestByIdCandidates, self).setUp()
        self.by_id = self.tmp_dir()
        self.devdir = self.tmp_dir()

    def _link(self, name, target):
        real = os.path.join(self.devdir, target)
        if not os.path.exists(real):
            util.write_file(real, '')
        os.symlink(real, os.path.join(self.by_id, name))
        return real

    def test_matching_links(self):
        self._link('nvme-Amazon_EC2_NVMe_Instance_Storage_AWS2', 'nvme2n1')
        self._link('nvme-Amazon_EC2_NVMe_Instance_Storage_AWS1', 'nvme1n1')
        self._link('nvme-Amazon_Elastic_Block_Store_vol0', 'nvme0n1')
        self.assertEqual(
            [os.path.join(self.by_id,
                          'nvme-Amazon_EC2_NVMe_Instance_Storage_AWS1'),
             os.path.join(self.by_id,
                          'nvme-Amazon_EC2_NVMe_Instance_Storage_AWS2')],
            nvme.by_id_candidates(self.by_id,
                                  config.DEFAULT_BY_ID_PATTERNS))

    def test_partitions_skipped(self):
        self._link('nvme-Amazon_EC2_NVMe_Instance_Storage_AWS1', 'nvme1n1')
        self._link('nvme-Amazon_EC2_NVMe_Instance_Storage_AWS1-part1',
                   'nvme1n1p1')
        self.assertEqual(
            [os.path.join(self.by_id,
                          'nvme-Amazon_EC2_NVMe_Instance_Storage_AWS1')],
            nvme.by_id_candidates(self.by_id,
                                  config.DEFAULT_BY_ID_PATTERNS))

    def test_regular_files_skipped(self):
        util.write_file(
            os.path.join(self.by_id,
                         'nvme-Amazon_EC2_NVMe_Instance_Storage_AWS1'), '')
        self.assertEqual([], nvme.by_id_candidates(
            self.by_id, config.DEFAULT_BY_ID_PATTERNS))

    def test_missing_dir(self):
        self.assertEqual([], nvme.by_id_candidates(
            os.path.join(self.by_id, 'missing'),
            config.DEFAULT_BY_ID_PATTERNS))


class TestDiscoverInstanceStore(CiTestCase):

    def setUp(self):
        super(TestDiscoverInstanceStore, self).setUp()
        self.by_id = self.tmp_dir()
        self.devdir = os.path.realpath(self.tmp_dir())
        self.setup_cfg = config.SetupConfig(by_id_dir=self.by_id)
        self.add_patch('nvmeraid.block.nvme.util.which', 'm_which')
        self.add_patch('nvmeraid.block.nvme.nvme_list_candidates',
                       'm_nvme_list')

    def _link(self, name, target):
        real = os.path.join(self.devdir, target)
        if not os.path.exists(real):
            util.write_file(real, '')
        os.symlink(real, os.path.join(self.by_id, name))
        return real

    def test_by_id_devices_sorted(self):
        dev2 = self._link('nvme-Amazon_EC2_NVMe_Instance_Storage_A', 'nvme2n1')
        dev1 = self._link('nvme-Amazon_EC2_NVMe_Instance_Storage_B', 'nvme1n1')
        devices = nvme.discover_instance_store(self.setup_cfg)
        self.assertEqual((dev1, dev2), devices.paths)
        self.assertEqual(0, self.m_nvme_list.call_count)

    def test_duplicate_links_collapse(self):
        dev1 = self._link('nvme-Amazon_EC2_NVMe_Instance_Storage_A', 'nvme1n1')
        self._link('nvme-Amazon_EC2_NVMe_Instance_Storage_A_1', 'nvme1n1')
        devices = nvme.discover_instance_store(self.setup_cfg)
        self.assertEqual((dev1,), devices.paths)

    def test_fallback_when_no_links(self):
        self.m_which.return_value = '/usr/sbin/nvme'
        self.m_nvme_list.return_value = ['/dev/nvme2n1', '/dev/nvme1n1']
        with self.assertLogs('nvmeraid', level='WARNING') as logs:
            devices = nvme.discover_instance_store(self.setup_cfg)
        self.assertEqual(('/dev/nvme1n1', '/dev/nvme2n1'), devices.paths)
        self.m_nvme_list.assert_called_with(config.DEFAULT_NVME_MODEL)
        self.assertIn('Falling back to nvme list', logs.output[0])

    def test_no_fallback_without_nvme(self):
        self.m_which.return_value = None
        devices = nvme.discover_instance_store(self.setup_cfg)
        self.assertFalse(devices)
        self.assertEqual(0, self.m_nvme_list.call_count)

    def test_nothing_found(self):
        self.m_which.return_value = '/usr/sbin/nvme'
        self.m_nvme_list.return_value = []
        self.assertEqual((), nvme.discover_instance_store(
            self.setup_cfg).paths)

    def test_missing_by_id_dir(self):
        self.m_which.return_value = None
        setup_cfg = config.SetupConfig(
            by_id_dir=os.path.join(self.by_id, 'missing'))
        self.assertFalse(nvme.discover_instance_store(setup_cfg))

    def test_repeatable(self):
        self._link('nvme-Amazon_EC2_NVMe_Instance_Storage_A', 'nvme2n1')
        self._link('nvme-Amazon_EC2_NVMe_Instance_Storage_B', 'nvme1n1')
        self.assertEqual(nvme.discover_instance_store(self.setup_cfg),
                         nvme.discover_instance_store(self.setup_cfg))

# vi: ts=4 expandtab syntax=python
