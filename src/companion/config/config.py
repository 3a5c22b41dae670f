import os
import platform

from configobj import ConfigObj, ConfigObjError, Section
from validate import Validator

# The default extension for configuration files
config_extension = '.cfg'

# The configuration shipped with this package
CONFIG_NAME = 'companion'
CONFIG_DIRECTORY = os.path.dirname(__file__)


def config_flavor(name, flavor=None):
    configname = name if not flavor else name + '.' + flavor
    return configname


def config_filename(name, directory=None):
    """
    Determines the location of a config file in the given directory.
    """
    return os.path.join(directory, name + config_extension)


def load_config_file_base(file, must_exist=True):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist) \
            if must_exist or os.path.exists(file) else ConfigObj()
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, subpart=None) -> ConfigObj:
    """
    Loads a specialization of a config file. The file is named after the base, followed by a
    period and the specialization if given, otherwise just the base name.
    Missing files give an empty configuration.
    """
    return load_config_file_base(config_filename(config_flavor(name, subpart), directory), False)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def load_config(name, directory, user_directory=None):
    """
    Loads all the configuration files that relate to the given name.
    Configurations are merged in this order, later ones taking precedence:
    - the default specialization
    - the platform specialization
    - the user override, in the user's home directory
    - the local configuration
    The merged configuration is validated against the "schema" specialization, which also
    supplies defaults and converts values to their declared types.
    :param directory: the location of the configuration files
    :param user_directory: where the user override lives. Defaults to the home directory.
    :return: the validated ConfigObj
    """
    schema = config_filename(config_flavor(name, 'schema'), directory)
    user_directory = user_directory if user_directory is not None else os.path.expanduser('~')
    config = ConfigObj(configspec=schema)
    config.merge(config_flavor_file(name, directory, 'default'))
    config.merge(config_flavor_file(name, directory, os_name()))
    config.merge(load_config_file_base(config_filename(name, user_directory), must_exist=False))
    config.merge(config_flavor_file(name, directory))

    result = config.validate(Validator())
    if result is not True:
        raise ConfigObjError("the config file %s failed validation %s" % (name, result))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the named configuration section
    :param conf:    The root configuration
    :param path:    An iterable that lists the names of the sections to resolve
    :return: The configuration section identified by the path, or None
    """
    for p in path:
        conf = conf.get(p, None)
        if conf is None:
            return None
    return conf


def apply_conf(conf: Section, target):
    """
    Applies the values in a configuration section to a target object, setting any attribute
    the target already has with the same name.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)


class CompanionSettings:
    """ Settings for reaching and starting the companion. """

    def __init__(self):
        self.ws_host = '127.0.0.1'
        self.ws_port = 9877
        self.connect_timeout = 5.0
        self.client_id = 'Bitbloq'
        self.app_path = ''
        self.executable = ''
        self.retry_delay = 0.7
        self.max_attempts = 20
        self.liveness_timeout = 2.0
        self.release_timeout = 2.0
        self.plotter_base_url = ''

    @property
    def url(self):
        return 'ws://%s:%s' % (self.ws_host, self.ws_port)


def load_settings(name=CONFIG_NAME, directory=CONFIG_DIRECTORY, user_directory=None) -> CompanionSettings:
    """
    Loads the settings from the [companion] section of the named configuration.
    """
    settings = CompanionSettings()
    conf = fetch_conf_path(load_config(name, directory, user_directory), ['companion'])
    if conf:
        apply_conf(conf, settings)
    return settings
