"""Tests for local storage."""

import pytest

from weibo_saver.errors import StorageError
from weibo_saver.storage import StorageManager

from .conftest import fixed_clock


class TestStorageManager:
    """Test the dated directory layout and file writes."""

    def test_directory_structure(self, tmp_path):
        """Test today's tree is created under the base path."""
        storage = StorageManager(tmp_path / 'saved', clock=fixed_clock)
        paths = storage.create_directory_structure()

        assert paths.date == tmp_path / 'saved' / '2024' / '05' / '2024-05-06'
        assert paths.images == paths.date / 'images'
        assert paths.videos == paths.date / 'videos'
        assert paths.images.is_dir()
        assert paths.videos.is_dir()

    def test_directory_structure_idempotent(self, tmp_path):
        """Test creating the tree twice is harmless."""
        storage = StorageManager(tmp_path, clock=fixed_clock)
        assert storage.create_directory_structure() == storage.create_directory_structure()

    def test_directory_structure_error(self, tmp_path):
        """Test a file in the way raises StorageError."""
        (tmp_path / '2024').write_text('not a directory')
        storage = StorageManager(tmp_path, clock=fixed_clock)
        with pytest.raises(StorageError):
            storage.create_directory_structure()

    def test_unique_filename(self, tmp_path):
        """Test numeric suffixes are added until the name is free."""
        assert StorageManager.generate_unique_filename(tmp_path, 'post') == 'post.md'

        (tmp_path / 'post.md').write_text('x')
        assert StorageManager.generate_unique_filename(tmp_path, 'post') == 'post-1.md'

        (tmp_path / 'post-1.md').write_text('x')
        assert StorageManager.generate_unique_filename(tmp_path, 'post') == 'post-2.md'

    def test_default_base_path(self, config):
        """Test the base path comes from the config when not given."""
        storage = StorageManager(config=config)
        assert str(storage.base_path) == config.storage_base_path

    @pytest.mark.asyncio
    async def test_save_text(self, tmp_path):
        """Test text is written as UTF-8."""
        storage = StorageManager(tmp_path, clock=fixed_clock)
        path = await storage.save_text(tmp_path / 'a.md', '# 微博\n')

        assert path.read_text(encoding='utf-8') == '# 微博\n'

    @pytest.mark.asyncio
    async def test_save_text_error(self, tmp_path):
        """Test a write into a missing directory raises StorageError."""
        storage = StorageManager(tmp_path, clock=fixed_clock)
        with pytest.raises(StorageError):
            await storage.save_text(tmp_path / 'missing' / 'a.md', 'x')
