#!/usr/bin/env python3
"""
Tests for work history date parsing and experience totals.
"""
import unittest
from datetime import date

from etl.resume.models import WorkExperience
from etl.resume.work_history import (
    months_between,
    parse_date_token,
    parse_work_history,
    total_experience_months,
)

TODAY = date(2024, 6, 10)


class TestParseDateToken(unittest.TestCase):

    def test_numeric_month_year(self):
        self.assertEqual(parse_date_token("03/2017"), date(2017, 3, 1))
        self.assertIsNone(parse_date_token("13/2017"))

    def test_year_only(self):
        self.assertEqual(parse_date_token("2018"), date(2018, 1, 1))

    def test_month_name(self):
        self.assertEqual(parse_date_token("March 2016"), date(2016, 3, 1))
        self.assertEqual(parse_date_token("September 2020"), date(2020, 9, 1))


class TestParseWorkHistory(unittest.TestCase):

    def test_header_on_previous_line(self):
        jobs = parse_work_history("Engineer | Initech\n2018 to 2020", TODAY)

        self.assertEqual(len(jobs), 1)
        self.assertEqual(jobs[0].position, "Engineer")
        self.assertEqual(jobs[0].company, "Initech")
        self.assertEqual(jobs[0].duration_in_months, 24)

    def test_header_on_same_line(self):
        jobs = parse_work_history("Data Analyst at Hooli (June 2015 - May 2017)", TODAY)

        self.assertEqual(jobs[0].position, "Data Analyst")
        self.assertEqual(jobs[0].company, "Hooli")
        self.assertEqual(jobs[0].duration_in_months, 23)
        self.assertFalse(jobs[0].is_current)

    def test_open_ended_range_uses_today(self):
        jobs = parse_work_history("Lead Developer, Umbrella\nJan 2023 - Present", TODAY)

        self.assertTrue(jobs[0].is_current)
        self.assertIsNone(jobs[0].end_date)
        self.assertEqual(jobs[0].duration_in_months, 17)

    def test_reversed_range_skipped(self):
        self.assertEqual(parse_work_history("Intern\n2020 - 2018", TODAY), [])

    def test_no_ranges(self):
        self.assertEqual(parse_work_history("Worked on many things", TODAY), [])


class TestTotalExperience(unittest.TestCase):

    def test_overlaps_are_merged(self):
        jobs = [
            WorkExperience(start_date=date(2018, 1, 1), end_date=date(2020, 1, 1)),
            WorkExperience(start_date=date(2019, 1, 1), end_date=date(2021, 1, 1)),
        ]
        self.assertEqual(total_experience_months(jobs, TODAY), 36)

    def test_gaps_are_not_counted(self):
        jobs = [
            WorkExperience(start_date=date(2015, 1, 1), end_date=date(2016, 1, 1)),
            WorkExperience(start_date=date(2018, 1, 1), end_date=date(2019, 7, 1)),
        ]
        self.assertEqual(total_experience_months(jobs, TODAY), 30)

    def test_undated_entries_add_their_duration(self):
        jobs = [WorkExperience(duration_in_months=5)]
        self.assertEqual(total_experience_months(jobs, TODAY), 5)

    def test_months_between_never_negative(self):
        self.assertEqual(months_between(date(2020, 5, 1), date(2019, 1, 1)), 0)


if __name__ == '__main__':
    unittest.main()
