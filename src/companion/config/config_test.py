import os
import shutil
import tempfile
import unittest

from configobj import ConfigObj, ConfigObjError
from hamcrest import assert_that, calling, is_, none, raises

from companion.config.config import CompanionSettings, apply_conf, config_filename, config_flavor, \
    fetch_conf_path, load_config_file_base, load_settings, map_os_name


class ConfigTestCase(unittest.TestCase):

    def setUp(self):
        self.home = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.home)

    def write_user_config(self, *lines):
        with open(os.path.join(self.home, 'companion.cfg'), 'w') as f:
            f.write('\n'.join(('[companion]',) + lines) + '\n')

    def test_config_file_not_found(self):
        assert_that(calling(load_config_file_base).with_args('blah'), raises(IOError))

    def test_missing_optional_file_is_empty(self):
        assert_that(load_config_file_base(os.path.join(self.home, 'blah.cfg'), False), is_({}))

    def test_config_flavor(self):
        assert_that(config_flavor('companion'), is_('companion'))
        assert_that(config_flavor('companion', 'schema'), is_('companion.schema'))
        assert_that(config_filename('companion', 'dir'), is_(os.path.join('dir', 'companion.cfg')))

    def test_defaults(self):
        settings = load_settings(user_directory=self.home)
        assert_that(settings.ws_port, is_(9877))
        assert_that(settings.client_id, is_('Bitbloq'))
        assert_that(settings.retry_delay, is_(0.7))
        assert_that(settings.max_attempts, is_(20))
        assert_that(settings.url, is_('ws://127.0.0.1:9877'))

    def test_user_config_overrides_defaults(self):
        self.write_user_config('ws_port = 9000', 'max_attempts = 5', 'app_path = /opt/app')
        settings = load_settings(user_directory=self.home)
        assert_that(settings.ws_port, is_(9000))
        assert_that(settings.max_attempts, is_(5))
        assert_that(settings.app_path, is_('/opt/app'))
        assert_that(settings.client_id, is_('Bitbloq'))

    def test_invalid_value_fails_validation(self):
        self.write_user_config('ws_port = not-a-port')
        assert_that(calling(load_settings).with_args(user_directory=self.home),
                    raises(ConfigObjError, "the config file companion failed validation"))

    def test_map_os_name(self):
        assert_that(map_os_name('Windows'), is_('windows'))
        assert_that(map_os_name('Darwin'), is_('osx'))
        assert_that(map_os_name('Linux'), is_('linux'))

    def test_non_existent_config_path(self):
        sut = ConfigObj()
        assert_that(fetch_conf_path(sut, ['abcd']), is_(none()))

    def test_apply_conf_sets_known_attributes_only(self):
        target = CompanionSettings()
        apply_conf({'ws_host': 'localhost', 'unknown': 1}, target)
        assert_that(target.ws_host, is_('localhost'))
        assert_that(hasattr(target, 'unknown'), is_(False))


if __name__ == '__main__':  # pragma no cover
    unittest.main()
