"""
Tests for storage backends and transaction support
"""

import pytest
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from dataclasses import dataclass

from loan_servicing.config import LoanServicingConfig
from loan_servicing.storage import (
    InMemoryStorage, SQLiteStorage, StorageRecord, create_storage
)


# Test data
test_data = {
    "id": "test_001",
    "loan_id": "LOAN001",
    "amount": 1666,
    "created_at": datetime.now(timezone.utc).isoformat(),
    "updated_at": datetime.now(timezone.utc).isoformat()
}


def sqlite_storage(temp_dir):
    return SQLiteStorage(Path(temp_dir) / "test.db")


class TestStorageInterface:
    """Test basic storage operations on every backend"""

    @pytest.fixture(params=["memory", "sqlite"])
    def storage(self, request):
        if request.param == "memory":
            storage = InMemoryStorage()
            yield storage
            storage.close()
        else:
            with tempfile.TemporaryDirectory() as temp_dir:
                storage = sqlite_storage(temp_dir)
                yield storage
                storage.close()

    def test_basic_operations(self, storage):
        """Test save, load, exists, find and count"""
        storage.save("test_table", "record_1", test_data)
        assert storage.load("test_table", "record_1") == test_data
        assert storage.load("test_table", "missing") is None

        assert storage.exists("test_table", "record_1")
        assert not storage.exists("test_table", "non_existent")

        storage.save("test_table", "record_2", {"id": "record_2", "loan_id": "LOAN002"})
        assert len(storage.load_all("test_table")) == 2

        results = storage.find("test_table", {"loan_id": "LOAN001"})
        assert len(results) == 1
        assert results[0]["id"] == "test_001"
        assert storage.find("test_table", {"loan_id": "LOAN001", "amount": 1}) == []

        assert storage.count("test_table") == 2

        storage.clear_table("test_table")
        assert storage.count("test_table") == 0

    def test_save_replaces_in_place(self, storage):
        """Test updating a record keeps its position in load_all"""
        storage.save("test_table", "a", {"id": "a", "amount": 1})
        storage.save("test_table", "b", {"id": "b", "amount": 2})
        storage.save("test_table", "a", {"id": "a", "amount": 10})

        assert [r["id"] for r in storage.load_all("test_table")] == ["a", "b"]
        assert storage.load("test_table", "a")["amount"] == 10
        assert storage.count("test_table") == 2

    def test_loaded_records_are_copies(self, storage):
        """Test mutating a loaded record does not change stored state"""
        storage.save("test_table", "record_1", test_data)
        loaded = storage.load("test_table", "record_1")
        loaded["amount"] = 0

        assert storage.load("test_table", "record_1")["amount"] == 1666

    def test_save_many(self, storage):
        """Test batch insert of several records"""
        storage.save_many("test_table", [
            (f"r{i}", {"id": f"r{i}", "loan_id": "LOAN001", "amount": i}) for i in range(5)
        ])

        assert storage.count("test_table") == 5
        assert [r["amount"] for r in storage.find("test_table", {"loan_id": "LOAN001"})] == [0, 1, 2, 3, 4]


class TestTransactionSupport:
    """Test atomic transaction support"""

    @pytest.fixture(params=["memory", "sqlite"])
    def storage(self, request):
        if request.param == "memory":
            yield InMemoryStorage()
        else:
            with tempfile.TemporaryDirectory() as temp_dir:
                storage = sqlite_storage(temp_dir)
                yield storage
                storage.close()

    def test_commit(self, storage):
        """Test successful block commits every write"""
        with storage.atomic():
            storage.save("test_table", "record_1", test_data)
            storage.save("test_table", "record_2", {"id": "record_2"})

        assert storage.count("test_table") == 2
        assert not storage.in_transaction

    def test_rollback(self, storage):
        """Test a failing block leaves no partial writes"""
        storage.save("test_table", "record_1", test_data)

        with pytest.raises(ValueError, match="Simulated error"):
            with storage.atomic():
                storage.save("test_table", "record_2", {"id": "record_2"})
                storage.save("test_table", "record_1", {"id": "test_001", "amount": 0})
                raise ValueError("Simulated error")

        assert storage.count("test_table") == 1
        assert storage.load("test_table", "record_1") == test_data
        assert not storage.in_transaction

    def test_nested_blocks_join_outer_transaction(self, storage):
        """Test an inner block's writes roll back with the outer block"""
        with pytest.raises(RuntimeError):
            with storage.atomic():
                with storage.atomic():
                    storage.save("test_table", "inner", {"id": "inner"})
                assert storage.in_transaction
                storage.save_many("other_table", [("x", {"id": "x"})])
                raise RuntimeError("outer failed")

        assert storage.count("test_table") == 0
        assert storage.count("other_table") == 0

    def test_sqlite_commit_is_durable(self):
        """Test committed SQLite writes survive a reopen"""
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = sqlite_storage(temp_dir)
            with storage.atomic():
                storage.save("test_table", "record_1", test_data)
            storage.close()

            reopened = sqlite_storage(temp_dir)
            assert reopened.load("test_table", "record_1") == test_data
            reopened.close()


class TestStorageRecord:
    """Test StorageRecord serialization"""

    def test_storage_record_serialization(self):
        """Test datetimes become ISO strings and come back"""

        @dataclass
        class TestRecord(StorageRecord):
            name: str
            amount: int

        now = datetime.now(timezone.utc)
        record = TestRecord(id="test_001", created_at=now, updated_at=now, name="Test", amount=1666)

        data = record.to_dict()
        assert data["created_at"] == now.isoformat()
        assert data["amount"] == 1666

        restored = TestRecord.from_dict(data)
        assert restored == record
        # from_dict must not mutate its input
        assert isinstance(data["created_at"], str)


class TestCreateStorage:
    """Test building a backend from configuration"""

    def test_memory_url(self):
        """Test memory:// selects InMemoryStorage"""
        assert isinstance(create_storage(LoanServicingConfig(database_url="memory://")), InMemoryStorage)

    def test_sqlite_url(self):
        """Test sqlite:/// selects SQLiteStorage at the given path"""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = Path(temp_dir) / "loans.db"
            storage = create_storage(LoanServicingConfig(database_url=f"sqlite:///{db_path}"))

            assert isinstance(storage, SQLiteStorage)
            assert storage.db_path == str(db_path)
            storage.close()

    def test_sqlite_memory_url(self):
        """Test sqlite:// alone opens an in-memory database"""
        storage = create_storage(LoanServicingConfig(database_url="sqlite://"))
        assert storage.db_path == ":memory:"
        storage.close()

    def test_unsupported_url(self):
        """Test unknown schemes are rejected"""
        with pytest.raises(ValueError, match="Unsupported database URL"):
            create_storage(LoanServicingConfig(database_url="postgresql://localhost/loans"))


if __name__ == "__main__":
    pytest.main([__file__])
