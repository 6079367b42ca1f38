from airmon_core.domain.ports import UnitOfWork


def delete_device_readings(device_id: str, uow: UnitOfWork) -> None:
    with uow:
        uow.reading_repo().delete_for_device(device_id)
