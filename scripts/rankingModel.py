'''
rankingModel.py

Classes for products and the ranking-based choice model used in product line
design.

This module implements:
- Product: a candidate product with its margin
- RankingChoiceModel: a finite mixture of customer types, each with a strict
  preference ranking over all products and the no-purchase option

Under the first-choice rule, a customer of type k buys the first product of
its ranking that is offered, or nothing if the no-purchase option comes
first. See Belloni et al. (2008) and Bertsimas and Misic (2019).

Author: Joline Uichanco
Created: Oct 13, 2026
'''

import numpy as np

from pldErrors import InputValidationError

# Identifier of the no-purchase option in a ranking
NO_PURCHASE = "NP"


class Product():
    '''
    A candidate product.

    Attributes
    ----------
    product_id : str
        Unique identifier for the product (e.g., "P01", "P02")
    margin : float
        Revenue (or profit) earned per unit sold; may be zero or negative
    '''
    def __init__(self, product_id, margin):
        self.product_id = product_id
        self.margin = margin


class RankingChoiceModel():
    '''
    First-choice ranking model.

    Attributes
    ----------
    lam : numpy.ndarray
        Probability of each customer type, nonnegative and summing to 1
    rankings : list
        rankings[k] lists every product ID and NO_PURCHASE exactly once,
        most preferred first
    '''

    def __init__(self, lam, rankings):
        '''
        Initialize a ranking choice model.

        Parameters
        ----------
        lam : array-like
            Probability of each customer type
        rankings : list of lists
            One ranking per customer type

        Raises
        ------
        InputValidationError
            If lam and rankings disagree in length or a ranking repeats an
            alternative or omits NO_PURCHASE
        '''
        if len(lam) != len(rankings):
            raise InputValidationError(
                f"{len(lam)} customer type probabilities for {len(rankings)} rankings")
        for k, ranking in enumerate(rankings):
            if len(set(ranking)) != len(ranking) or NO_PURCHASE not in ranking:
                raise InputValidationError(
                    f"ranking {k + 1} must list each alternative once and include NO_PURCHASE")
        self.lam = np.asarray(lam, dtype=float)
        self.rankings = [list(r) for r in rankings]

    def getNumTypes(self):
        '''Return the number of customer types (K).'''
        return len(self.rankings)

    def getOrderings(self, product_ids):
        '''
        Encode the rankings as integer orderings over a product list.

        Product product_ids[i] becomes alternative i+1 and NO_PURCHASE becomes
        n+1.

        Parameters
        ----------
        product_ids : list
            Product IDs in the order used by the optimization

        Returns
        -------
        orderings : numpy.ndarray of shape (K, n+1)
        '''
        n = len(product_ids)
        index = {j: i + 1 for (i, j) in enumerate(product_ids)}
        index[NO_PURCHASE] = n + 1

        orderings = np.zeros((self.getNumTypes(), n + 1), dtype=int)
        for k, ranking in enumerate(self.rankings):
            if set(ranking) != set(index):
                raise InputValidationError(
                    f"ranking {k + 1} does not cover exactly the products {list(product_ids)}"
                    " and NO_PURCHASE")
            orderings[k] = [index[j] for j in ranking]
        return orderings

    def evaluateAssortment(self, assortment, product_dict):
        '''
        Evaluate an assortment under first-choice behavior.

        Parameters
        ----------
        assortment : iterable
            Product IDs that are offered
        product_dict : dict
            Dictionary mapping product IDs to Product objects

        Returns
        -------
        exp_revenue : float
            Expected revenue per customer = sum_j margin_j * P_j(S)
        prob_dict : dict
            Purchase probability of each offered product and of NO_PURCHASE
        '''
        offered = set(assortment)
        prob_dict = {j: 0.0 for j in offered}
        prob_dict[NO_PURCHASE] = 0.0

        for (weight, ranking) in zip(self.lam, self.rankings):
            # First offered alternative in the ranking; NO_PURCHASE is always available
            for j in ranking:
                if j == NO_PURCHASE or j in offered:
                    prob_dict[j] += weight
                    break

        exp_revenue = sum(product_dict[j].margin * prob_dict[j] for j in offered)
        return (exp_revenue, prob_dict)
