"""
Tests for command line parsing and option layering.
"""

import json

import pytest

from dirserve import cli
from dirserve.cli import TEMPLATE, build_parser, collect_options, load_file, main, write_template
from dirserve.config import Config
from dirserve.errors import ConfigError


def options_for(argv, config_paths=()):
    return collect_options(build_parser().parse_args(argv), config_paths=list(config_paths))


class TestParser:

    def test_no_arguments(self):
        assert options_for([]) == {}

    def test_positionals(self):
        assert options_for(['/srv/www', '8080']) == {'root': '/srv/www', 'port': 8080}

    def test_flags(self):
        options = options_for([
            '--base-url', '/files/', '--autoindex', '--no-serve-dirs',
            '--logfile', 'x.log', '--quiet', '--debug', '--cors', '--host', '127.0.0.1',
        ])
        assert options == {
            'base_url': '/files/',
            'autoindex': True,
            'serve_dirs': False,
            'logfile': 'x.log',
            'verbose': False,
            'debug': True,
            'cors': True,
            'host': '127.0.0.1',
        }

    def test_header_and_mime_pairs_extend_defaults(self):
        options = options_for(['--header', 'x-a=1', '--header', 'x-b = 2', '--mime', 'md=text/markdown'])
        assert options['headers'] == {
            'cache-control': 'public, max-age=604800, immutable',
            'x-a': '1',
            'x-b': '2',
        }
        assert options['mimes'] == {'md': 'text/markdown'}

    def test_bad_pair(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(['--header', 'novalue'])

    def test_bad_port(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(['.', 'eighty'])


class TestLayering:

    def test_files_then_flags(self, tmp_path):
        home = tmp_path / 'home.json'
        local = tmp_path / 'local.json'
        home.write_text(json.dumps({'port': 1000, 'base_url': 'a', 'verbose': False}))
        local.write_text(json.dumps({'port': 2000}))
        options = options_for(['--base-url', 'b'], config_paths=[home, local])
        assert options == {'port': 2000, 'base_url': 'b', 'verbose': False}

    def test_missing_default_files_skipped(self, tmp_path):
        assert options_for([], config_paths=[str(tmp_path / 'absent')]) == {}

    def test_explicit_config_file(self, tmp_path):
        extra = tmp_path / 'extra.json'
        extra.write_text(json.dumps({'debug': True}))
        assert options_for(['--config', str(extra)]) == {'debug': True}

    def test_explicit_config_file_missing(self, tmp_path):
        with pytest.raises(ConfigError, match='failed to read config file'):
            options_for(['--config', str(tmp_path / 'absent.json')])

    def test_header_flag_merges_into_file_headers(self, tmp_path):
        conf = tmp_path / 'c.json'
        conf.write_text(json.dumps({'headers': {'x-file': 'f'}}))
        options = options_for(['--header', 'x-cli=c'], config_paths=[conf])
        assert options['headers'] == {'x-file': 'f', 'x-cli': 'c'}

    def test_load_file_rejects_non_object(self, tmp_path):
        conf = tmp_path / 'c.json'
        conf.write_text('[1, 2]')
        with pytest.raises(ConfigError, match='JSON object'):
            load_file(str(conf))

    def test_load_file_rejects_bad_json(self, tmp_path):
        conf = tmp_path / 'c.json'
        conf.write_text('{not json')
        with pytest.raises(ConfigError):
            load_file(str(conf))


class TestMain:

    @pytest.fixture(autouse=True)
    def isolated(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(cli, 'default_config_paths', lambda: [])

    def test_init_writes_template(self, tmp_path, capsys):
        assert main(['--init']) == 0
        written = json.loads((tmp_path / '.dirserve').read_text())
        assert written == TEMPLATE
        assert 'created' in capsys.readouterr().out

    def test_template_is_valid_config(self, tmp_path):
        path = write_template(str(tmp_path))
        config = Config.from_options(load_file(path))
        assert config.serve_dirs and not config.autoindex

    def test_invalid_port_exits_with_error(self, tmp_path, capsys):
        assert main([str(tmp_path), '70000', '--quiet']) == 1
        assert 'invalid port' in capsys.readouterr().err

    def test_missing_root_exits_with_error(self, tmp_path, capsys):
        assert main([str(tmp_path / 'nope'), '--quiet']) == 1
        assert 'no such directory' in capsys.readouterr().err

    def test_conflicting_modes(self, tmp_path, capsys):
        assert main([str(tmp_path), '--autoindex', '--quiet']) == 1
        assert 'mutually exclusive' in capsys.readouterr().err

    def test_starts_server(self, tmp_path, monkeypatch):
        started = []
        monkeypatch.setattr(cli.FileServer, 'start', lambda self: started.append(self.config))
        assert main([str(tmp_path), '8123', '--quiet']) == 0
        assert started[0].port == 8123
        assert started[0].root == str(tmp_path)
