# This file is part of nvmeraid. See LICENSE for copyright and license info.

import io
import mock

from nvmeraid import config
from nvmeraid.block import DeviceSet
from nvmeraid.commands import main
from .helpers import CiTestCase


class MainTestBase(CiTestCase):

    def setUp(self):
        super(MainTestBase, self).setUp()
        self.add_patch('nvmeraid.commands.main.log.basicConfig',
                       'm_log_config')
        self.add_patch('nvmeraid.commands.main.sys.stdout', 'm_stdout',
                       new_callable=io.StringIO, autospec=None)
        self.add_patch('nvmeraid.commands.main.sys.stderr', 'm_stderr',
                       new_callable=io.StringIO, autospec=None)

    def _main(self, argv, entry=main.main):
        with self.assertRaises(SystemExit) as ctx:
            entry(argv)
        return ctx.exception.code


class TestMain(MainTestBase):

    def test_no_subcommand(self):
        self.assertEqual(1, self._main([]))
        self.assertIn('usage:', self.m_stdout.getvalue())

    def test_unknown_option(self):
        self.assertEqual(2, self._main(['setup', '--bogus']))

    def test_features(self):
        self.assertEqual(0, self._main(['features']))
        self.assertIn('FSTAB_BY_UUID', self.m_stdout.getvalue().split())

    @mock.patch('nvmeraid.commands.version.version.version_string')
    def test_version(self, m_version):
        m_version.return_value = '1.0.0-3-gabcdef12'
        self.assertEqual(0, self._main(['version']))
        self.assertEqual('1.0.0-3-gabcdef12\n', self.m_stdout.getvalue())

    def test_verbosity(self):
        self._main(['-vv', 'features'])
        self.assertEqual(3, self.m_log_config.call_args[1]['verbosity'])
        self._main(['-q', 'features'])
        self.assertEqual(0, self.m_log_config.call_args[1]['verbosity'])

    @mock.patch.dict('os.environ', {'NVMERAID_VERBOSITY': '2'})
    def test_verbosity_from_environment(self):
        self._main(['features'])
        self.assertEqual(2, self.m_log_config.call_args[1]['verbosity'])

    @mock.patch('nvmeraid.commands.discover.nvme.discover_instance_store')
    def test_failure_exit_code(self, m_discover):
        m_discover.side_effect = RuntimeError('lsblk exploded')
        self.assertEqual(main.EXIT_FAILURE, self._main(['discover']))
        self.assertIn('lsblk exploded', self.m_stderr.getvalue())

    def test_invalid_set_is_usage_error(self):
        self.assertEqual(2, self._main(['setup', '--set', 'setup/fstype']))


class TestDiscover(MainTestBase):

    def setUp(self):
        super(TestDiscover, self).setUp()
        self.add_patch(
            'nvmeraid.commands.discover.nvme.discover_instance_store',
            'm_discover')
        self.m_discover.return_value = DeviceSet(
            ['/dev/nvme1n1', '/dev/nvme2n1'])

    def test_lines(self):
        self.assertEqual(0, self._main(['discover']))
        self.assertEqual('/dev/nvme1n1\n/dev/nvme2n1\n',
                         self.m_stdout.getvalue())

    def test_json(self):
        self.assertEqual(0, self._main(['discover', '--json']))
        self.assertIn('"/dev/nvme2n1"', self.m_stdout.getvalue())

    def test_nothing_found(self):
        self.m_discover.return_value = DeviceSet(())
        self.assertEqual(0, self._main(['discover']))
        self.assertEqual('', self.m_stdout.getvalue())


class TestSetupCommand(MainTestBase):

    def setUp(self):
        super(TestSetupCommand, self).setUp()
        self.add_patch('nvmeraid.commands.setup.setup_main', 'm_setup_main')
        self.m_setup_main.return_value = 0

    def _setup_cfg(self):
        args = self.m_setup_main.call_args[0][0]
        return config.load_setup_config(
            args.config, overrides={'mount_point': args.dir,
                                    'raid_name': args.name})

    def test_setup_options(self):
        self.assertEqual(0, self._main(['setup', '-d', '/scratch',
                                        '-n', 'data0']))
        setup_cfg = self._setup_cfg()
        self.assertEqual('/scratch', setup_cfg.mount_point)
        self.assertEqual('data0', setup_cfg.raid_name)

    def test_setup_config_file_and_set(self):
        cfg_file = self.tmp_path('nvmeraid.yaml')
        with open(cfg_file, 'w') as fp:
            fp.write('setup:\n  fstype: ext4\n  raid_name: fromfile\n')
        self.assertEqual(0, self._main(
            ['setup', '-c', cfg_file, '--set', 'setup/raid_name=fromset',
             '--set', 'json:setup/resync_timeout=120']))
        setup_cfg = self._setup_cfg()
        self.assertEqual('ext4', setup_cfg.fstype)
        self.assertEqual('fromset', setup_cfg.raid_name)
        self.assertEqual(120, setup_cfg.resync_timeout)

    def test_unknown_top_level_key(self):
        self.assertEqual(2, self._main(
            ['setup', '--set', 'setpu/fstype=ext4']))
        self.assertIn('setpu', self.m_stderr.getvalue())
        self.assertFalse(self.m_setup_main.called)

    def test_top_level_verbosity_key(self):
        self.assertEqual(0, self._main(['setup', '--set', 'verbosity=2']))
        self.assertEqual(2, self.m_log_config.call_args[1]['verbosity'])

    def test_setup_failure_exit_code(self):
        self.m_setup_main.return_value = 1
        self.assertEqual(1, self._main(['setup']))

    @mock.patch('nvmeraid.deps.install_deps')
    def test_install_deps(self, m_install):
        m_install.return_value = 0
        self.assertEqual(0, self._main(['--install-deps', 'setup', '--set',
                                        'setup/fstype=ext4']))
        m_install.assert_called_with(fstype='ext4')

    @mock.patch('nvmeraid.deps.install_deps')
    def test_install_deps_failure(self, m_install):
        m_install.return_value = 1
        self.assertEqual(1, self._main(['--install-deps', 'setup']))
        self.assertEqual(0, self.m_setup_main.call_count)

    def test_setup_nvme_raid_entry_point(self):
        self.assertEqual(0, self._main(['-d', '/scratch'],
                                       entry=main.setup_nvme_raid))
        setup_cfg = self._setup_cfg()
        self.assertEqual('/scratch', setup_cfg.mount_point)
        self.assertEqual('local_raid', setup_cfg.raid_name)

# vi: ts=4 expandtab syntax=python
