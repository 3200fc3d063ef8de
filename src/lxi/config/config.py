import logging
import os
import platform

from configobj import ConfigObj, ConfigObjError, Section, flatten_errors
from validate import Validator

logger = logging.getLogger(__name__)

# The default extension for configuration files
config_extension = '.cfg'

# the schema applied to a device section when no schema file is provided
DEVICE_CONFIGSPEC = [
    '[device]',
    'host = string',
    'port = integer(min=1, max=65535, default=5025)',
    'timeout = float(min=0.001, default=None)',
]


def config_flavor(name, flavor=None):
    """
    >>> config_flavor('scope', 'default')
    'scope.default'
    """
    return name if not flavor else name + '.' + flavor


def config_filename(name, directory):
    """
    Determines the location of a config file in the given directory.
    """
    return os.path.join(directory, name + config_extension)


def load_config_file_base(file, must_exist=True):
    """
    Reads one configuration file. Values may refer to each other with $name.
    A missing file raises IOError, unless must_exist is False, when it reads as empty.
    Syntax errors are raised as ConfigObjError naming the file.
    """
    if not must_exist and not os.path.exists(file):
        return ConfigObj()
    try:
        return ConfigObj(file, interpolation='Template', file_error=True)
    except ConfigObjError as e:
        raise type(e)('%s at %s' % (e, file))


def load_configspec(file):
    """ Loads a schema file. Returns None if the file does not exist. """
    if not os.path.exists(file):
        return None
    return ConfigObj(file, _inspec=True, file_error=True)


def config_flavor_file(name, directory, subpart=None) -> ConfigObj:
    """
    Reads "name.subpart.cfg" from the directory, or "name.cfg" when there is no subpart.
    A missing file reads as empty.
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
    return 'osx' if name == 'darwin' else name


def os_name():
    return map_os_name(platform.system())


def config_layers(name, directory):
    """ the files making up a configuration, lowest precedence first """
    yield config_flavor_file(name, directory, 'default')
    yield config_flavor_file(name, directory, os_name())
    yield load_config_file_base(os.path.join(os.path.expanduser('~'), name + config_extension), must_exist=False)
    yield config_flavor_file(name, directory)


def load_config(name, directory, configspec=None):
    """
    Merges the configuration files for a name. Later files override earlier ones:
    name.default.cfg, name.<os>.cfg, ~/name.cfg and finally name.cfg.
    The result is validated against name.schema.cfg in the directory, or against the
    configspec given when there is no schema file. With neither, the merged values are
    returned as strings.
    :return: the validated ConfigObj
    """
    config = ConfigObj()
    for layer in config_layers(name, directory):
        config.merge(layer)

    schema = load_configspec(config_filename(config_flavor(name, 'schema'), directory))
    if schema is None and configspec is not None:
        schema = ConfigObj(configspec, _inspec=True)
    if schema is None:
        return config

    config.configspec = schema
    result = config.validate(Validator(), preserve_errors=True)
    if result is not True:
        errors = ['.'.join(sections + [key or '']) for sections, key, _ in flatten_errors(config, result)]
        raise ConfigObjError("the config file %s failed validation: %s" % (name, ', '.join(errors)))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the named configuration section
    :param conf:        The root configuration
    :param path:        An iterable that lists the names of the config to resolve
    :return: The configuration object identified by the path, or None
    """
    for p in path:
        conf = conf.get(p, None)
        if conf is None:
            return None
    return conf


def apply_conf(conf: Section, target):
    """
    Applies the attributes contained in a configuration object to a target object.
    Only attributes the target already has are set.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)


def apply_conf_path(conf: Section, name_parts, target):
    conf = fetch_conf_path(conf, name_parts)
    if conf:
        apply_conf(conf, target)


def configure_module(module, config_name=None):
    """
    Applies the configuration to the given module.
    The configuration is loaded from files named config_name (by default the module's own name),
    located in the same directory as the module source file. Values are taken from the section
    path matching the module's fully qualified name (x.y.z).
    """
    fqname = module.__name__
    if not config_name:
        config_name = fqname.split('.')[-1]
    conf = load_config(config_name, os.path.dirname(module.__file__))
    apply_conf_path(conf, fqname.split('.'), module)


def device_settings(name, directory, section='device'):
    """
    Loads the device section of the named configuration.
    :return: a dict with the keys host, port and timeout
    """
    spec = [line.replace('[device]', '[%s]' % section) for line in DEVICE_CONFIGSPEC]
    conf = load_config(name, directory, spec)
    settings = fetch_conf_path(conf, [section])
    if not settings or settings.get('host') is None:
        raise ConfigObjError("the config file %s has no host in section [%s]" % (name, section))
    return {'host': settings['host'], 'port': settings['port'], 'timeout': settings.get('timeout')}


def device_from_config(name, directory, section='device', **kwargs):
    """
    Creates an LxiDevice from the device section of the named configuration.
    Further keyword arguments are passed to the LxiDevice constructor.
    """
    from lxi.device import LxiDevice
    settings = device_settings(name, directory, section)
    logger.debug("configured device %s:%s from %s" % (settings['host'], settings['port'], name))
    return LxiDevice((settings['host'], settings['port']), settings['timeout'], **kwargs)
