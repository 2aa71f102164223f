"""
Tests for the DynamoDB-backed task unit of work.
"""
import pytest
import sys
import os
from decimal import Decimal
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from botocore.exceptions import ClientError
from shared.dynamo import DynamoTaskStore, put_item, serialize_item
from shared.errors import TaskBusy, TaskNotFound
from shared.models import Submission, TaskStatus, parse_timestamp


def client_error(code, operation='UpdateItem'):
    return ClientError({'Error': {'Code': code, 'Message': code}}, operation)


def task_item(**overrides):
    item = {
        'taskId': 'task-1',
        'creatorId': None,
        'question': 'Capital of France?',
        'questionType': 'short',
        'correctAnswer': 'Paris',
        'rewardPerCompletion': Decimal('10'),
        'maxAcceptances': Decimal('5'),
        'escrowBalance': Decimal('25'),
        'status': 'open',
        'lockOwner': 'whoever',
        'lockExpiresAt': Decimal('0'),
    }
    item.update(overrides)
    return item


@pytest.fixture
def tables():
    return {'tasks': MagicMock(), 'submissions': MagicMock()}


@pytest.fixture
def store(tables):
    resource = MagicMock()
    resource.Table.side_effect = lambda name: tables[name]
    return DynamoTaskStore(
        resource=resource,
        client=MagicMock(),
        tasks_table_name='tasks',
        submissions_table_name='submissions',
        wallets_table_name='wallets',
        lease_seconds=30,
        poll_interval=0,
        wait_timeout=0
    )


class TestLeaseAcquisition:

    def test_loads_task_with_integer_points(self, store, tables):
        tables['tasks'].update_item.return_value = {'Attributes': task_item()}

        with store.unit_of_work('task-1') as uow:
            task = uow.task
            uow.commit()

        assert task.reward_per_completion == 10
        assert isinstance(task.escrow_balance, int)
        assert task.creator_id is None
        kwargs = tables['tasks'].update_item.call_args_list[0].kwargs
        assert kwargs['Key'] == {'taskId': 'task-1'}
        assert 'attribute_exists(taskId)' in kwargs['ConditionExpression']
        assert kwargs['ExpressionAttributeValues'][':owner'] == uow.owner

    def test_missing_task(self, store, tables):
        tables['tasks'].update_item.side_effect = client_error('ConditionalCheckFailedException')
        tables['tasks'].get_item.return_value = {}

        with pytest.raises(TaskNotFound):
            store.unit_of_work('task-1').__enter__()

    def test_waits_for_held_lease(self, store, tables):
        tables['tasks'].update_item.side_effect = [
            client_error('ConditionalCheckFailedException'),
            client_error('ConditionalCheckFailedException'),
            {'Attributes': task_item()},
        ]
        tables['tasks'].get_item.return_value = {'Item': {'taskId': 'task-1'}}

        with patch('shared.dynamo.time.sleep') as sleep:
            uow = store.unit_of_work('task-1')
            uow.__enter__()

        assert uow.task.task_id == 'task-1'
        assert sleep.call_count == 2

    def test_bounded_wait_raises_busy(self, store, tables):
        store.wait_timeout = 0.001
        tables['tasks'].update_item.side_effect = client_error('ConditionalCheckFailedException')
        tables['tasks'].get_item.return_value = {'Item': {'taskId': 'task-1'}}

        with patch('shared.dynamo.time.sleep'):
            with pytest.raises(TaskBusy):
                store.unit_of_work('task-1').__enter__()

    def test_unreadable_task_releases_lease(self, store, tables):
        tables['tasks'].update_item.return_value = {
            'Attributes': {'taskId': 'task-1', 'status': 'open', 'startsAt': 'garbage'}
        }
        uow = store.unit_of_work('task-1')

        with pytest.raises(ValueError):
            uow.__enter__()

        release = tables['tasks'].update_item.call_args_list[-1].kwargs
        assert tables['tasks'].update_item.call_count == 2
        assert release['UpdateExpression'] == 'REMOVE lockOwner, lockExpiresAt'
        assert release['ExpressionAttributeValues'] == {':owner': uow.owner}

    def test_other_errors_propagate(self, store, tables):
        tables['tasks'].update_item.side_effect = client_error('ProvisionedThroughputExceededException')

        with pytest.raises(ClientError):
            store.unit_of_work('task-1').__enter__()


class TestReads:

    def test_has_submission_uses_consistent_read(self, store, tables):
        tables['tasks'].update_item.return_value = {'Attributes': task_item()}
        tables['submissions'].get_item.return_value = {'Item': {'taskId': 'task-1', 'userId': 'u1'}}

        with store.unit_of_work('task-1') as uow:
            assert uow.has_submission('u1') is True
            uow.commit()

        tables['submissions'].get_item.assert_called_once_with(
            Key={'taskId': 'task-1', 'userId': 'u1'},
            ConsistentRead=True
        )

    def test_count_correct_submissions_paginates(self, store, tables):
        tables['tasks'].update_item.return_value = {'Attributes': task_item()}
        tables['submissions'].query.side_effect = [
            {'Count': 2, 'LastEvaluatedKey': {'taskId': 'task-1', 'userId': 'u9'}},
            {'Count': 1},
        ]

        with store.unit_of_work('task-1') as uow:
            assert uow.count_correct_submissions() == 3
            uow.commit()

        second = tables['submissions'].query.call_args_list[1].kwargs
        assert second['ExclusiveStartKey'] == {'taskId': 'task-1', 'userId': 'u9'}
        assert second['Select'] == 'COUNT'
        assert second['ConsistentRead'] is True


class TestCommit:

    def _submission(self):
        return Submission(
            submission_id='sub-1',
            task_id='task-1',
            user_id='u1',
            answer='Paris',
            is_correct=True,
            awarded_points=10,
            validated_at=parse_timestamp('2026-03-01T12:00:00Z'),
        )

    def test_award_is_one_transaction(self, store, tables):
        tables['tasks'].update_item.return_value = {'Attributes': task_item()}

        with store.unit_of_work('task-1') as uow:
            uow.debit_escrow(10)
            uow.record_submission(self._submission())
            uow.credit_points('u1', 10)
            uow.close_task()
            uow.commit()

        store.client.transact_write_items.assert_called_once()
        items = store.client.transact_write_items.call_args.kwargs['TransactItems']
        assert len(items) == 3

        task_update = items[0]['Update']
        assert task_update['TableName'] == 'tasks'
        assert 'escrowBalance = escrowBalance - :debit' in task_update['UpdateExpression']
        assert '#status = :closed' in task_update['UpdateExpression']
        assert 'REMOVE lockOwner, lockExpiresAt' in task_update['UpdateExpression']
        assert task_update['ConditionExpression'] == 'lockOwner = :owner AND escrowBalance >= :debit'
        assert task_update['ExpressionAttributeValues'][':debit'] == {'N': '10'}
        assert task_update['ExpressionAttributeValues'][':closed'] == {'S': TaskStatus.CLOSED}

        put = items[1]['Put']
        assert put['TableName'] == 'submissions'
        assert put['ConditionExpression'] == 'attribute_not_exists(taskId)'
        assert put['Item']['isCorrect'] == {'BOOL': True}
        assert put['Item']['awardedPoints'] == {'N': '10'}

        wallet = items[2]['Update']
        assert wallet['Key'] == {'walletId': {'S': 'u1'}}
        assert wallet['UpdateExpression'].startswith('ADD points :amount')

        # Lease released by the transaction, not by a separate call
        assert tables['tasks'].update_item.call_count == 1

    def test_close_only_commit(self, store, tables):
        tables['tasks'].update_item.return_value = {'Attributes': task_item()}

        with store.unit_of_work('task-1') as uow:
            uow.close_task()
            uow.commit()

        items = store.client.transact_write_items.call_args.kwargs['TransactItems']
        assert len(items) == 1
        update = items[0]['Update']
        assert 'escrowBalance' not in update['UpdateExpression']
        assert update['ConditionExpression'] == 'lockOwner = :owner'

    def test_failed_commit_releases_lease(self, store, tables):
        tables['tasks'].update_item.return_value = {'Attributes': task_item()}
        store.client.transact_write_items.side_effect = client_error(
            'TransactionCanceledException', 'TransactWriteItems')

        with pytest.raises(ClientError):
            with store.unit_of_work('task-1') as uow:
                uow.debit_escrow(10)
                uow.commit()

        release = tables['tasks'].update_item.call_args_list[-1].kwargs
        assert release['UpdateExpression'] == 'REMOVE lockOwner, lockExpiresAt'
        assert release['ConditionExpression'] == 'lockOwner = :owner'
        assert release['ExpressionAttributeValues'] == {':owner': uow.owner}

    def test_exit_without_commit_writes_nothing(self, store, tables):
        tables['tasks'].update_item.return_value = {'Attributes': task_item()}

        with store.unit_of_work('task-1') as uow:
            uow.debit_escrow(10)

        store.client.transact_write_items.assert_not_called()
        assert tables['tasks'].update_item.call_count == 2


class TestHelpers:

    def test_serialize_item(self):
        assert serialize_item({'a': 1, 'b': 'x', 'c': None, 'd': False}) == {
            'a': {'N': '1'},
            'b': {'S': 'x'},
            'c': {'NULL': True},
            'd': {'BOOL': False},
        }

    def test_put_item_reports_failure(self):
        with patch('shared.dynamo.dynamodb') as resource:
            resource.Table.return_value.put_item.side_effect = client_error(
                'ConditionalCheckFailedException', 'PutItem')
            assert put_item('tasks', {'taskId': 't'}, condition='attribute_not_exists(taskId)') is False

    def test_put_item_passes_condition(self):
        with patch('shared.dynamo.dynamodb') as resource:
            assert put_item('tasks', {'taskId': 't'}, condition='attribute_not_exists(taskId)') is True
            resource.Table.return_value.put_item.assert_called_once_with(
                Item={'taskId': 't'},
                ConditionExpression='attribute_not_exists(taskId)'
            )
